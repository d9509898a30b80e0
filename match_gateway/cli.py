"""
Match Gateway CLI.

Command-line interface for running the gateway and working with identity
tokens during development.
"""

import sys
import time
from datetime import datetime, timezone

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="match-gateway",
    help="CamConnect Match Gateway CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: str = typer.Option(None, help="Bind address (default: GATEWAY_HOST)"),
    port: int = typer.Option(None, help="Port (default: GATEWAY_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
):
    """Run the gateway with uvicorn."""
    import uvicorn
    from match_shared.config.settings import settings

    errors = settings.validate_production_secrets()
    if errors:
        for error in errors:
            console.print(f"[red]✗ {error}[/red]")
        raise typer.Exit(1)

    bind_host = host or settings.gateway_host
    bind_port = port or settings.gateway_port
    console.print(f"[blue]Starting match gateway on {bind_host}:{bind_port}[/blue]")
    uvicorn.run(
        "match_gateway.main:app",
        host=bind_host,
        port=bind_port,
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
        reload=reload,
    )


# =============================================================================
# Token Commands
# =============================================================================

@app.command()
def issue_token(
    identity: str = typer.Argument(..., help="Identity (email) to embed"),
    ttl: int = typer.Option(None, help="Lifetime in seconds (default: IDENTITY_TOKEN_EXPIRE_DAYS)"),
):
    """Mint an identity token for local testing."""
    from match_shared.security.auth import sign_identity_token

    if "@" not in identity:
        console.print("[red]Identity must be an email address[/red]")
        raise typer.Exit(1)

    token = sign_identity_token(identity, ttl_seconds=ttl)
    # Plain print so the token can be piped
    print(token)


@app.command()
def verify_token(
    token: str = typer.Argument(..., help="Identity token to check"),
):
    """Verify an identity token and show its claims."""
    from match_shared.security.auth import Unauthenticated, decode_identity_claims, verify_identity_token

    try:
        identity = verify_identity_token(token)
        claims = decode_identity_claims(token)
    except Unauthenticated as e:
        console.print(f"[red]✗ Token rejected: {e.reason}[/red]")
        raise typer.Exit(1)

    table = Table(title="Identity Token")
    table.add_column("Claim", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("identity", identity)
    for name in ("iat", "exp"):
        if name in claims:
            stamp = datetime.fromtimestamp(claims[name], tz=timezone.utc).isoformat()
            table.add_row(name, stamp)
    for name, value in claims.items():
        if name not in ("iat", "exp"):
            table.add_row(name, str(value))

    console.print(table)


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    url: str = typer.Option("http://localhost:3000/ws/health", help="Health endpoint URL"),
):
    """Check a running gateway."""
    import httpx

    table = Table(title="Match Gateway Health")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    start = time.time()
    try:
        response = httpx.get(url, timeout=5.0)
    except httpx.HTTPError as e:
        console.print(f"[red]✗ {type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)
    elapsed = (time.time() - start) * 1000

    if response.status_code != 200:
        console.print(f"[red]✗ Status {response.status_code}[/red]")
        raise typer.Exit(1)

    body = response.json()
    table.add_row("Status", str(body.get("status")))
    table.add_row("Response Time", f"{elapsed:.0f}ms")
    for key in ("total_connections", "waiting", "paired", "blocked_pairs"):
        table.add_row(key, str(body.get(key, "?")))
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from match_gateway.main import app as fastapi_app

    table = Table(title="Match Gateway Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("Gateway", fastapi_app.version)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()

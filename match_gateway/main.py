"""
Match Gateway main application.

Pairs anonymous participants into 1:1 sessions and relays the signaling
they need to open a direct peer connection.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from match_shared.config.settings import settings
from match_shared.config.logging import setup_logging, gateway_logger as logger
from match_gateway.connection_manager import ConnectionManager
from match_gateway.components.core.constants import WSConstants
from match_gateway.components.endpoints.handlers import MatchEndpoint


# Global connection manager
manager = ConnectionManager()


# =============================================================================
# Lifespan and background tasks
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts:
    - Presence broadcaster (online_count every presence_interval_seconds)
    - Heartbeat cleanup task for stale and dead connections
    """
    setup_logging()
    logger.info(
        "Starting match gateway",
        port=settings.gateway_port,
        ws_ping_interval=settings.ws_ping_interval,
        env=settings.environment,
    )
    for error in settings.validate_production_secrets():
        logger.error("Configuration error", detail=error)

    background = [
        asyncio.create_task(manager.presence.run(), name="presence_broadcaster"),
        asyncio.create_task(start_heartbeat_cleanup(), name="heartbeat_cleanup"),
    ]

    yield

    logger.info("Shutting down match gateway")
    for task in background:
        task.cancel()
    await asyncio.gather(*background, return_exceptions=True)

    closed = await manager.shutdown()
    logger.info("Match gateway stopped", sockets_closed=closed)


async def start_heartbeat_cleanup():
    """
    Periodically clean up stale connections.

    Runs every 30 seconds to check for:
    - Connections without recent inbound frames
    - Dead connections marked during send operations
    """
    while True:
        try:
            await asyncio.sleep(WSConstants.HEARTBEAT_CLEANUP_INTERVAL)

            stale_cleaned = await manager.cleanup_stale_connections()
            if stale_cleaned > 0:
                logger.info("Cleaned up stale connections", count=stale_cleaned)

            dead_cleaned = await manager.cleanup_dead_connections()
            if dead_cleaned > 0:
                logger.info("Cleaned up dead connections", count=dead_cleaned)

        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Error in heartbeat cleanup", error=str(e))


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="CamConnect Match Gateway",
    description="Random 1:1 matching and WebRTC signaling relay",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origin_list() or ["*"],
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.get("/")
def root():
    """Status banner."""
    return {"status": "CamConnect backend running", "service": "match-gateway"}


# =============================================================================
# Health Check
# =============================================================================


@app.get("/ws/health")
def health_check():
    """Basic health check endpoint."""
    try:
        stats = manager.get_stats_sync()
    except Exception as e:
        logger.warning("Failed to get stats in health check", error=str(e))
        stats = {"error": "stats_unavailable"}
    return {
        "status": "healthy" if not manager.is_shutting_down() else "shutting_down",
        "service": "match-gateway",
        "version": app.version,
        "environment": settings.environment,
        **stats,
    }


# =============================================================================
# Prometheus Metrics Endpoint
# =============================================================================


@app.get("/ws/metrics")
async def prometheus_metrics():
    """
    Prometheus-compatible metrics endpoint.

    Configure Prometheus scrape:
        scrape_configs:
          - job_name: 'match-gateway'
            static_configs:
              - targets: ['localhost:3000']
            metrics_path: '/ws/metrics'
    """
    from fastapi.responses import PlainTextResponse
    from match_gateway.components.metrics.prometheus import generate_prometheus_metrics

    metrics_output = await generate_prometheus_metrics(manager)
    return PlainTextResponse(
        content=metrics_output,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# =============================================================================
# WebSocket Endpoint
# =============================================================================


@app.websocket("/ws")
async def match_websocket(
    websocket: WebSocket,
    token: str | None = Query(None, description="Identity token"),
):
    """
    WebSocket endpoint for participants.

    A missing token is rejected by the auth strategy (close 4001), not by
    query validation.
    """
    endpoint = MatchEndpoint(websocket, manager, token or "")
    await endpoint.run()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "match_gateway.main:app",
        host=settings.gateway_host,
        port=settings.gateway_port,
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
        reload=True,
    )

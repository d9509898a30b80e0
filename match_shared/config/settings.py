"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Identity token verification
    # Tokens are issued by the external OTP service; the gateway only verifies them.
    jwt_secret: str = "college_chat_secret_change_me"
    jwt_algorithm: str = "HS256"
    jwt_identity_claim: str = "email"
    jwt_issuer: str | None = None
    jwt_audience: str | None = None
    # Lifetime used by the developer CLI when minting tokens
    identity_token_expire_days: int = 30

    # CORS / Origin validation
    # Comma-separated list of allowed origins. "*" allows any origin.
    allowed_origins: str = "*"

    # Server
    gateway_host: str = "0.0.0.0"
    gateway_port: int = 3000

    # Environment
    environment: str = "development"
    debug: bool = True

    # Presence
    presence_interval_seconds: float = 2.0

    # WebSocket
    # Application-level idle limits, 0 = off. A paired call is silent on the
    # signaling channel once media flows peer-to-peer, so liveness comes from
    # protocol-level pings (ws_ping_interval / ws_ping_timeout, sent by uvicorn).
    ws_heartbeat_timeout: float = 0
    ws_receive_timeout: float = 0
    ws_ping_interval: float = 20.0
    ws_ping_timeout: float = 20.0
    ws_max_message_size: int = 64 * 1024  # 64 KB
    ws_outbox_size: int = 256  # Pending outbound frames per connection
    ws_max_total_connections: int = 5000
    # 0 means unlimited: the same identity may hold several connections (e.g. two tabs)
    ws_max_connections_per_identity: int = 0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that secrets are properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        WEAK_SECRETS = {
            "college_chat_secret_change_me",
            "secret",
            "password",
            "changeme",
            "default",
        }

        if self.environment == "production":
            if self.jwt_secret in WEAK_SECRETS or len(self.jwt_secret) < 32:
                errors.append(
                    "JWT_SECRET must be at least 32 characters and not a default value in production"
                )

            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.allowed_origins or self.allowed_origins.strip() == "*":
                errors.append(
                    "ALLOWED_ORIGINS must list the frontend origin(s) in production"
                )

        return errors

    def allowed_origin_list(self) -> list[str]:
        """Parsed list of allowed origins (may contain "*")."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()

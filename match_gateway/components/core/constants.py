"""
Match Gateway Constants.

Centralized constants with documentation explaining the value chosen.
"""

from enum import Enum, IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "InboundEvent",
    "OutboundEvent",
    "RELAY_EVENTS",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "validate_websocket_origin",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) for application-specific errors.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or client navigating away
    POLICY_VIOLATION = 1008  # Generic policy violation
    MESSAGE_TOO_BIG = 1009  # Message too large to process
    SERVER_ERROR = 1011  # Unexpected server error
    SERVER_OVERLOADED = 1013  # Server overloaded, try again later

    # Custom application codes (4000-4999)
    AUTH_FAILED = 4001  # Identity token missing, invalid or expired
    FORBIDDEN = 4003  # Origin not allowed


class InboundEvent(str, Enum):
    """Events a client may send over its WebSocket."""

    JOIN = "join"
    NEXT = "next"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    CHAT = "chat"
    BLOCK = "block"


class OutboundEvent(str, Enum):
    """Events the gateway sends to clients."""

    WAITING = "waiting"
    MATCHED = "matched"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    CHAT = "chat"
    PARTNER_LEFT = "partner_left"
    BLOCKED_ACK = "blocked_ack"
    ONLINE_COUNT = "online_count"


# Inbound events forwarded verbatim to the partner, keyed to the outbound name
RELAY_EVENTS: Final[dict[InboundEvent, OutboundEvent]] = {
    InboundEvent.OFFER: OutboundEvent.OFFER,
    InboundEvent.ANSWER: OutboundEvent.ANSWER,
    InboundEvent.ICE_CANDIDATE: OutboundEvent.ICE_CANDIDATE,
    InboundEvent.CHAT: OutboundEvent.CHAT,
}


class WSConstants:
    """
    Match gateway operational constants.

    These are defaults used where settings do not apply. At runtime the
    ConnectionManager reads `match_shared.config.settings` for anything
    marked configurable there (timeouts, outbox size, limits).
    """

    # WS_ACCEPT_TIMEOUT: 5 seconds
    # WebSocket handshake should complete within TCP timeout.
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # HEARTBEAT_CLEANUP_INTERVAL: 30 seconds
    # Clients ping every ~25s; checking every 30s keeps dead sockets from
    # lingering in the waiting pool for more than a minute past the timeout.
    HEARTBEAT_CLEANUP_INTERVAL: Final[float] = 30.0

    # WRITER_SEND_TIMEOUT: 10 seconds
    # A single send that takes longer than this means the peer stopped
    # reading; the connection is marked dead.
    WRITER_SEND_TIMEOUT: Final[float] = 10.0

    # SHUTDOWN_DRAIN_TIMEOUT: 5 seconds
    # Time writer tasks get to flush pending frames on shutdown.
    SHUTDOWN_DRAIN_TIMEOUT: Final[float] = 5.0

    # MAX_DEAD_CONNECTIONS: 500
    # Upper bound on connections waiting for deferred cleanup.
    MAX_DEAD_CONNECTIONS: Final[int] = 500


# Message type constants for heartbeat protocol
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PING_JSON: Final[str] = '{"type":"ping"}'
MSG_PONG_JSON: Final[str] = '{"type":"pong"}'


def validate_websocket_origin(origin: str | None, settings: object) -> bool:
    """
    Validate WebSocket origin header against allowed origins.

    A configured "*" accepts any origin (the frontend is usually deployed
    on a separate host). A missing Origin header is only tolerated in
    development, where native test clients do not send one.

    Args:
        origin: The Origin header value, or None if not present.
        settings: Settings object with environment and allowed_origins attributes.

    Returns:
        True if origin is allowed, False otherwise.
    """
    from match_shared.config.logging import get_logger

    _logger = get_logger(__name__)

    allowed_origins_str = getattr(settings, "allowed_origins", "") or ""
    allowed = [o.strip() for o in allowed_origins_str.split(",") if o.strip()]

    if "*" in allowed:
        return True

    if not origin:
        is_dev = getattr(settings, "environment", "production") == "development"
        if is_dev:
            _logger.warning(
                "WebSocket connection with missing Origin header (allowed in dev mode only)",
            )
            return True
        _logger.warning(
            "WebSocket connection rejected: missing Origin header in production",
        )
        return False

    if origin in allowed:
        return True

    _logger.warning(
        "WebSocket connection rejected: origin not in allowed list",
        origin=origin,
        allowed_count=len(allowed),
    )
    return False

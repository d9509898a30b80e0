"""
Core utilities for the match gateway.

Constants, error taxonomy and audit context.
"""

from match_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    InboundEvent,
    OutboundEvent,
    RELAY_EVENTS,
)
from match_gateway.components.core.context import WebSocketContext, sanitize_log_data
from match_gateway.components.core.errors import (
    MatchGatewayError,
    Unauthenticated,
    NotPaired,
    SelfMatch,
    StaleReference,
    ConnectionLimitExceeded,
)

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "InboundEvent",
    "OutboundEvent",
    "RELAY_EVENTS",
    "WebSocketContext",
    "sanitize_log_data",
    "MatchGatewayError",
    "Unauthenticated",
    "NotPaired",
    "SelfMatch",
    "StaleReference",
    "ConnectionLimitExceeded",
]

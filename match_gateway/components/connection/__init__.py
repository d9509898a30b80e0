"""
Connection management components.

Connection records, the live connection registry and heartbeat tracking.
"""

from match_gateway.components.connection.record import (
    Connection,
    ConnectionState,
    OutboundMessage,
)
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat

__all__ = [
    "Connection",
    "ConnectionState",
    "OutboundMessage",
    "ConnectionRegistry",
    "HeartbeatTracker",
    "handle_heartbeat",
]

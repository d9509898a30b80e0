"""
WebSocket Endpoint Mixins.

Small single-purpose mixins composed by WebSocketEndpointBase.

Usage:
    class MyEndpoint(MessageValidationMixin, HeartbeatMixin, WebSocketEndpointBase):
        ...
"""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

from match_shared.config.logging import get_logger
from match_gateway.components.core.constants import WSCloseCode

if TYPE_CHECKING:
    from fastapi import WebSocket
    from match_gateway.components.core.context import WebSocketContext
    from match_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


# =============================================================================
# Protocols (what the mixins expect from the endpoint)
# =============================================================================


class HasWebSocket(Protocol):
    websocket: "WebSocket"
    endpoint_name: str
    context: "WebSocketContext | None"


class HasManager(Protocol):
    manager: "ConnectionManager"


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for inbound frame size validation.

    Payloads are otherwise never inspected or rate-limited.
    """

    max_message_size: int

    async def validate_message_size(self: HasWebSocket, data: str) -> bool:
        """
        Returns:
            True if valid, False if too large (connection closed with 1009).
        """
        if len(data) > self.max_message_size:
            logger.warning(
                "Message size exceeded limit",
                endpoint=self.endpoint_name,
                identifier=self.context.identifier if self.context else "unknown",
                size=len(data),
                max_size=self.max_message_size,
            )
            await self.websocket.close(
                code=WSCloseCode.MESSAGE_TOO_BIG,
                reason="Message too large",
            )
            return False
        return True


# =============================================================================
# HeartbeatMixin
# =============================================================================


class HeartbeatMixin:
    """Records inbound activity so the cleanup loop can find stale sockets."""

    def record_heartbeat(self: "HasWebSocket & HasManager") -> None:
        if self.context and self.context.connection_id:
            self.manager.record_heartbeat(self.context.connection_id)


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """Standardized lifecycle logging and auditing."""

    def log_connect(self: HasWebSocket) -> None:
        logger.info(
            "Participant connected",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
        )
        if self.context:
            self.context.audit("CONNECT")

    def log_disconnect(self: HasWebSocket, reason: str = "client_disconnect") -> None:
        logger.info(
            "Participant disconnected",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
            reason=reason,
        )
        if self.context:
            self.context.audit("DISCONNECT", reason=reason)

    def log_connect_rejected(self: HasWebSocket, reason: str) -> None:
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
            reason=reason,
        )
        if self.context:
            self.context.audit("CONNECT_REJECTED", reason=reason)


__all__ = [
    "MessageValidationMixin",
    "HeartbeatMixin",
    "ConnectionLifecycleMixin",
]

"""
WebSocket Endpoint Base Class.

Connection lifecycle shared by gateway endpoints: accept, authenticate,
register, message loop, disconnect.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from match_shared.config.logging import get_logger
from match_shared.infrastructure.correlation import bind_connection_id, reset_connection_id
from match_gateway.components.auth.strategies import AuthResult
from match_gateway.components.connection.heartbeat import handle_heartbeat
from match_gateway.components.core.constants import WSCloseCode, WSConstants
from match_gateway.components.core.context import WebSocketContext, sanitize_log_data
from match_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    HeartbeatMixin,
    MessageValidationMixin,
)

if TYPE_CHECKING:
    from match_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class WebSocketEndpointBase(
    MessageValidationMixin,
    HeartbeatMixin,
    ConnectionLifecycleMixin,
    ABC,
):
    """
    Base class for WebSocket endpoints.

    The socket is accepted before authentication so that rejections reach
    the client as close codes (4001/4003) rather than an HTTP 403.

    Subclasses implement:
    - authenticate(): produce an AuthResult
    - handle_message(): process non-heartbeat frames

    Usage:
        endpoint = MatchEndpoint(websocket, manager, token)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str,
    ):
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.receive_timeout = manager.settings.ws_receive_timeout
        self.max_message_size = manager.settings.ws_max_message_size

        self.context: WebSocketContext | None = None
        self.connection_id: str | None = None
        self._is_running = False

    @abstractmethod
    async def authenticate(self) -> AuthResult:
        """Authenticate the (already accepted) connection."""

    @abstractmethod
    async def handle_message(self, data: str) -> None:
        """Handle a non-heartbeat text frame."""

    async def run(self) -> None:
        """
        Main entry point - run the WebSocket endpoint.

        1. Accept
        2. Authenticate (close 4001/4003 on failure)
        3. Register with the ConnectionManager
        4. Message loop
        5. Disconnect cleanup, always
        """
        try:
            await asyncio.wait_for(self.websocket.accept(), timeout=WSConstants.WS_ACCEPT_TIMEOUT)
        except (asyncio.TimeoutError, RuntimeError, OSError) as e:
            logger.warning("WebSocket accept failed", endpoint=self.endpoint_name, error=str(e))
            return

        self.context = WebSocketContext.from_websocket(self.websocket, self.endpoint_name)

        result = await self.authenticate()
        if not result.success:
            self.manager.metrics.increment_connection_rejected_auth()
            self.context.audit("AUTH_FAILED", reason=result.audit_reason)
            await self.websocket.close(code=result.close_code, reason=result.error_message or "")
            return

        self.context.identity = result.data["identity"]

        try:
            conn = await self.manager.connect(self.websocket, self.context.identity)
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            await self.websocket.close(code=WSCloseCode.SERVER_OVERLOADED, reason="Server busy")
            return

        self.connection_id = conn.id
        self.context.connection_id = conn.id
        token = bind_connection_id(conn.id)
        self.log_connect()

        self._is_running = True
        try:
            await self._message_loop()
        except WebSocketDisconnect:
            self.log_disconnect("client_disconnect")
        except RuntimeError as e:
            # Socket closed underneath us (cleanup or shutdown)
            self.log_disconnect(f"closed: {e}")
        finally:
            self._is_running = False
            try:
                await self.manager.disconnect(conn.id)
            finally:
                reset_connection_id(token)

    async def _message_loop(self) -> None:
        while self._is_running:
            data = await self._receive_with_timeout()
            if data is None:
                logger.info(
                    "Connection timed out (no messages)",
                    endpoint=self.endpoint_name,
                    identifier=self.context.identifier if self.context else "unknown",
                    timeout=self.receive_timeout,
                )
                await self.websocket.close(code=WSCloseCode.NORMAL, reason="Connection timeout")
                break

            if not await self.validate_message_size(data):
                break

            self.record_heartbeat()

            if await handle_heartbeat(self.websocket, data):
                continue

            await self.handle_message(data)

    async def _receive_with_timeout(self) -> str | None:
        """Receive a text frame, or None on timeout. A timeout of 0 waits forever."""
        if self.receive_timeout <= 0:
            return await self.websocket.receive_text()
        try:
            return await asyncio.wait_for(
                self.websocket.receive_text(),
                timeout=self.receive_timeout,
            )
        except asyncio.TimeoutError:
            return None

    def log_dropped_frame(self, data: str, reason: str) -> None:
        logger.debug(
            "Malformed frame dropped",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
            reason=reason,
            message=sanitize_log_data(data),
        )

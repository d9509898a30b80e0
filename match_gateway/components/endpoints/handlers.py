"""
Concrete WebSocket Endpoint Implementations.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from fastapi import WebSocket

from match_gateway.components.auth.strategies import AuthResult, IdentityTokenAuthStrategy
from match_gateway.components.endpoints.base import WebSocketEndpointBase

if TYPE_CHECKING:
    from match_gateway.connection_manager import ConnectionManager


class MatchEndpoint(WebSocketEndpointBase):
    """
    WebSocket endpoint for participants.

    Frames are JSON text: {"event": "<name>", "data": <payload>}. Malformed
    frames are dropped and the connection stays open.
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        token: str,
    ):
        super().__init__(websocket=websocket, manager=manager, endpoint_name="/ws")
        self.token = token
        self._auth_strategy = IdentityTokenAuthStrategy()

    async def authenticate(self) -> AuthResult:
        return await self._auth_strategy.authenticate(self.websocket, self.token)

    async def handle_message(self, data: str) -> None:
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            self.log_dropped_frame(data, "invalid_json")
            return

        if not isinstance(frame, dict):
            self.log_dropped_frame(data, "not_an_object")
            return

        event = frame.get("event")
        if not isinstance(event, str):
            self.log_dropped_frame(data, "missing_event")
            return

        if not await self.manager.dispatch(self.connection_id, event, frame.get("data")):
            self.log_dropped_frame(data, "not_dispatched")

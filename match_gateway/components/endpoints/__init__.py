"""
WebSocket endpoints.
"""

from match_gateway.components.endpoints.base import WebSocketEndpointBase
from match_gateway.components.endpoints.handlers import MatchEndpoint

__all__ = ["WebSocketEndpointBase", "MatchEndpoint"]

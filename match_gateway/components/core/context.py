"""
Per-connection context for logging and the security audit trail.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from match_shared.config.logging import audit_ws_connection, mask_email

if TYPE_CHECKING:
    from fastapi import WebSocket


# C0/C1 controls, zero-width marks, bidi embeddings/isolates and the BOM
_UNSAFE_CHARS = re.compile(
    r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]"
)


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Make a client-supplied frame safe to embed in a log line.

    The frame is cut to `max_length` before cleaning, so the logged size is
    bounded no matter what the client sent.
    """
    clipped = data[:max_length]
    cleaned = _UNSAFE_CHARS.sub("", clipped).replace("\\", "\\\\").replace('"', '\\"')
    return cleaned + "..." if len(data) > max_length else cleaned


@dataclass
class WebSocketContext:
    """
    What is known about a socket at each step of its life.

    Only the origin is known at accept time; `identity` is filled in after
    authentication and `connection_id` after registration.
    """

    endpoint: str
    origin: str | None = None
    identity: str | None = None
    connection_id: str | None = None

    @classmethod
    def from_websocket(cls, websocket: "WebSocket", endpoint: str) -> "WebSocketContext":
        return cls(endpoint=endpoint, origin=websocket.headers.get("origin"))

    @property
    def identifier(self) -> str:
        """PII-safe label for log lines."""
        if self.connection_id:
            return f"conn:{self.connection_id[:8]}"
        if self.identity:
            return f"identity:{mask_email(self.identity)}"
        return "anonymous"

    def audit(self, event_type: str, **extra: Any) -> None:
        """Record an audit event carrying whatever fields are known so far."""
        known = {
            name: value
            for name, value in (
                ("origin", self.origin),
                ("identity", self.identity),
                ("connection_id", self.connection_id),
            )
            if value
        }
        audit_ws_connection(event_type, self.endpoint, **known, **extra)

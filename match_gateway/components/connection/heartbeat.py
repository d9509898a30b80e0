"""
Heartbeat Tracker for the match gateway.

Tracks last inbound activity for each connection and identifies stale
connections whose transport died without a close frame (mobile clients
switching networks, laptops going to sleep). A stale connection left in
the waiting pool would be matched with real participants, so the cleanup
loop disconnects them.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

from match_shared.config.logging import get_logger
from match_gateway.components.core.constants import MSG_PING_PLAIN, MSG_PING_JSON, MSG_PONG_JSON

if TYPE_CHECKING:
    from fastapi import WebSocket

_heartbeat_logger = get_logger(__name__)


class HeartbeatTracker:
    """
    Tracks heartbeat timestamps per connection id.

    Thread-safe: all dictionary operations happen under a threading.Lock so
    the sync health endpoint can read stats while the loop mutates them.
    """

    def __init__(self, timeout_seconds: float = 60.0):
        """
        Args:
            timeout_seconds: Seconds without activity before connection is stale.
                0 turns stale detection off.
        """
        self._timeout = timeout_seconds
        self._last_heartbeat: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def enabled(self) -> bool:
        return self._timeout > 0

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._last_heartbeat)

    def record(self, connection_id: str, timestamp: float | None = None) -> None:
        """
        Record activity from a connection.

        Args:
            connection_id: The connection handle.
            timestamp: Optional Unix timestamp. If None, uses current time.
        """
        with self._lock:
            self._last_heartbeat[connection_id] = (
                timestamp if timestamp is not None else time.time()
            )

    def remove(self, connection_id: str) -> None:
        """Stop tracking a connection."""
        with self._lock:
            self._last_heartbeat.pop(connection_id, None)

    def is_stale(self, connection_id: str) -> bool:
        """Unknown connections are considered stale."""
        with self._lock:
            last_time = self._last_heartbeat.get(connection_id)
        if last_time is None:
            return True
        return self.enabled and time.time() - last_time > self._timeout

    def cleanup_stale(self) -> list[str]:
        """
        Remove and return stale connection ids from tracking.

        Identifies and removes in one locked pass so two cleanup cycles
        never report the same connection.
        """
        if not self.enabled:
            return []
        now = time.time()
        stale = []
        with self._lock:
            for connection_id, last_time in list(self._last_heartbeat.items()):
                if now - last_time > self._timeout:
                    stale.append(connection_id)
                    del self._last_heartbeat[connection_id]
        return stale

    def get_stats(self) -> dict[str, float | int]:
        """Get heartbeat tracker statistics."""
        with self._lock:
            now = time.time()
            ages = [now - t for t in self._last_heartbeat.values()]
            tracked = len(self._last_heartbeat)

        return {
            "tracked_connections": tracked,
            "timeout_seconds": self._timeout,
            "oldest_heartbeat_age": max(ages) if ages else 0,
            "average_heartbeat_age": sum(ages) / len(ages) if ages else 0,
        }


async def handle_heartbeat(ws: "WebSocket", data: str) -> bool:
    """
    Respond to ping messages with pong.

    Supports both plain text and JSON formatted pings.

    Returns:
        True if message was a heartbeat and was handled, False otherwise.
    """
    if data == MSG_PING_PLAIN or data == MSG_PING_JSON:
        try:
            await ws.send_text(MSG_PONG_JSON)
        except (ConnectionError, RuntimeError, OSError):
            # Connection may have closed - the endpoint loop handles cleanup
            pass
        except Exception as e:
            _heartbeat_logger.warning(
                "Unexpected error sending heartbeat response",
                error=type(e).__name__,
                message=str(e),
            )
        return True
    return False

"""
Connection Cleanup Management.

Handles cleanup of stale connections (no inbound activity within the
heartbeat timeout) and dead connections (outbox overflow or send failure).
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable, TYPE_CHECKING

from match_shared.config.logging import get_logger
from match_gateway.components.core.constants import WSCloseCode, WSConstants

if TYPE_CHECKING:
    from match_gateway.components.connection.heartbeat import HeartbeatTracker
    from match_gateway.components.connection.record import Connection
    from match_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)

CloseCallback = Callable[[str, int, str], Awaitable[None]]
DisconnectCallback = Callable[[str], Awaitable[object]]


class ConnectionCleanup:
    """
    Manages cleanup of connections.

    Dead Connection Tracking:
    - `mark_dead_connection` is synchronous so it can run inside the state
      lock's critical section; everything runs on one event loop.
    - Size limited; evicts the oldest mark when at capacity.
    """

    def __init__(
        self,
        metrics: "MetricsCollector",
        heartbeat_tracker: "HeartbeatTracker",
        close_callback: CloseCallback,
        disconnect_callback: DisconnectCallback,
        max_dead_connections: int = WSConstants.MAX_DEAD_CONNECTIONS,
    ) -> None:
        """
        Args:
            metrics: Collects cleanup metrics.
            heartbeat_tracker: Tracks connection activity.
            close_callback: Closes the socket of a connection id.
            disconnect_callback: Purges a connection id from the session state.
            max_dead_connections: Maximum dead connections to track.
        """
        self._metrics = metrics
        self._heartbeat_tracker = heartbeat_tracker
        self._close = close_callback
        self._disconnect = disconnect_callback
        self._max_dead_connections = max_dead_connections

        self._dead_connections: dict[str, float] = {}

    @property
    def dead_connections_count(self) -> int:
        """Number of connections pending cleanup."""
        return len(self._dead_connections)

    # =========================================================================
    # Heartbeat tracking (delegated to HeartbeatTracker)
    # =========================================================================

    def record_heartbeat(self, connection_id: str) -> None:
        self._heartbeat_tracker.record(connection_id)

    async def cleanup_stale_connections(self) -> int:
        """
        Close and disconnect connections without recent activity.

        Returns:
            Number of connections cleaned up.
        """
        stale = self._heartbeat_tracker.cleanup_stale()
        cleaned = 0

        for connection_id in stale:
            try:
                await self._close(connection_id, WSCloseCode.GOING_AWAY, "Heartbeat timeout")
            except Exception as e:
                logger.debug("Failed to close stale connection", connection_id=connection_id, error=str(e))

            try:
                await self._disconnect(connection_id)
                cleaned += 1
            except Exception as e:
                logger.warning("Failed to disconnect stale connection", connection_id=connection_id, error=str(e))

        if cleaned:
            self._metrics.add_stale_cleaned(cleaned)
        return cleaned

    # =========================================================================
    # Dead connection management
    # =========================================================================

    def mark_dead_connection(self, conn: "Connection") -> None:
        """Mark a connection as dead for deferred cleanup."""
        if conn.id in self._dead_connections:
            return

        if len(self._dead_connections) >= self._max_dead_connections:
            oldest = min(self._dead_connections, key=self._dead_connections.__getitem__)
            del self._dead_connections[oldest]
            logger.warning(
                "Dead connections at capacity, evicting oldest",
                max_size=self._max_dead_connections,
                evicted_connection_id=oldest,
            )

        self._dead_connections[conn.id] = time.time()
        logger.debug("Connection marked dead", connection_id=conn.id, dropped_frames=conn.dropped_frames)

    async def cleanup_dead_connections(self) -> int:
        """
        Close and disconnect connections marked dead.

        Returns:
            Number of connections cleaned up.
        """
        if not self._dead_connections:
            return 0
        dead = list(self._dead_connections)
        self._dead_connections.clear()

        cleaned = 0
        for connection_id in dead:
            try:
                await self._close(connection_id, WSCloseCode.SERVER_OVERLOADED, "Send failure")
            except Exception as e:
                logger.debug("Failed to close dead connection", connection_id=connection_id, error=str(e))
            try:
                await self._disconnect(connection_id)
                cleaned += 1
            except Exception as e:
                logger.warning("Failed to cleanup dead connection", connection_id=connection_id, error=str(e))

        if cleaned:
            self._metrics.add_dead_cleaned(cleaned)
        return cleaned

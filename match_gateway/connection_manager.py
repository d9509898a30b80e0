"""
Match Gateway Connection Manager.

Thin orchestrator that composes the modular components and binds them to
WebSocket transports:
- SessionLifecycle: registry, waiting pool, blocks, matching and relay
- PresenceCounter: online_count broadcasts
- OutboundWriter: one per connection, drains the outbox to the socket
- ConnectionCleanup: stale/dead connection cleanup
- ConnectionStats: statistics aggregation

One instance is created per process and handed to the transport layer.
"""

from __future__ import annotations

import asyncio
from typing import Any, TYPE_CHECKING

from match_shared.config.logging import get_logger
from match_shared.config.settings import Settings, get_settings
from match_gateway.components.connection.heartbeat import HeartbeatTracker
from match_gateway.components.connection.record import Connection
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.core.constants import WSCloseCode, WSConstants
from match_gateway.components.core.errors import ConnectionLimitExceeded
from match_gateway.components.matching.blocks import BlockRegistry
from match_gateway.components.matching.pool import WaitingPool
from match_gateway.components.metrics.collector import MetricsCollector
from match_gateway.components.presence.counter import PresenceCounter
from match_gateway.core.connection import (
    ConnectionCleanup,
    ConnectionStats,
    OutboundWriter,
    is_ws_connected,
)
from match_gateway.core.session.lifecycle import SessionLifecycle

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Manages WebSocket connections for the random-match service.

    Configuration from settings:
    - ws_max_total_connections: Global connection limit (default: 5000)
    - ws_max_connections_per_identity: Per-identity limit (default: 0 = unlimited)
    - ws_outbox_size: Pending outbound frames per connection (default: 256)
    - ws_heartbeat_timeout: Seconds before connection is stale (default: 0 = off)
    - presence_interval_seconds: online_count broadcast interval (default: 2.0)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        s = self._settings

        self._metrics = MetricsCollector()
        self._heartbeat_tracker = HeartbeatTracker(timeout_seconds=s.ws_heartbeat_timeout)
        self._registry = ConnectionRegistry(
            max_total_connections=s.ws_max_total_connections,
            max_connections_per_identity=s.ws_max_connections_per_identity,
            outbox_size=s.ws_outbox_size,
        )

        self._cleanup = ConnectionCleanup(
            metrics=self._metrics,
            heartbeat_tracker=self._heartbeat_tracker,
            close_callback=self._close_socket,
            disconnect_callback=self.disconnect,
        )

        self._lifecycle = SessionLifecycle(
            registry=self._registry,
            pool=WaitingPool(),
            blocks=BlockRegistry(),
            metrics=self._metrics,
            on_send_failed=self._cleanup.mark_dead_connection,
        )

        self._presence = PresenceCounter(
            registry=self._registry,
            interval_seconds=s.presence_interval_seconds,
            metrics=self._metrics,
            on_send_failed=self._cleanup.mark_dead_connection,
        )

        self._stats = ConnectionStats(
            registry=self._registry,
            lifecycle=self._lifecycle,
            metrics=self._metrics,
            heartbeat_tracker=self._heartbeat_tracker,
            get_dead_connections_count=lambda: self._cleanup.dead_connections_count,
        )

        self._sockets: dict[str, "WebSocket"] = {}
        self._writers: dict[str, OutboundWriter] = {}
        self._shutdown = False

    # =========================================================================
    # Public properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def lifecycle(self) -> SessionLifecycle:
        return self._lifecycle

    @property
    def presence(self) -> PresenceCounter:
        return self._presence

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def total_connections(self) -> int:
        return self._registry.count

    def is_shutting_down(self) -> bool:
        return self._shutdown

    # =========================================================================
    # Connection management
    # =========================================================================

    async def connect(self, websocket: "WebSocket", identity: str) -> Connection:
        """
        Register an accepted, authenticated WebSocket and start its writer.

        Raises:
            ConnectionError: If shutting down or a connection cap is reached.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            conn = await self._lifecycle.connect(identity)
        except ConnectionLimitExceeded:
            self._metrics.increment_connection_rejected_limit()
            raise

        self._sockets[conn.id] = websocket
        writer = OutboundWriter(websocket, conn, on_failure=self._cleanup.mark_dead_connection)
        self._writers[conn.id] = writer
        writer.start()

        self._heartbeat_tracker.record(conn.id)
        self._metrics.increment_connection_accepted()
        return conn

    async def dispatch(self, connection_id: str, event: str, data: Any = None) -> bool:
        """Route one inbound event to the session state machine."""
        return await self._lifecycle.dispatch(connection_id, event, data)

    async def disconnect(self, connection_id: str) -> Connection | None:
        """
        Purge a connection and stop its writer. Idempotent.

        The former partner (if any) is notified with partner_left.
        """
        conn = await self._lifecycle.disconnect(connection_id)
        self._heartbeat_tracker.remove(connection_id)
        self._sockets.pop(connection_id, None)
        writer = self._writers.pop(connection_id, None)
        if writer is not None:
            await writer.stop()
        if conn is not None:
            self._metrics.increment_connection_closed()
        return conn

    async def _close_socket(self, connection_id: str, code: int, reason: str) -> None:
        ws = self._sockets.get(connection_id)
        if ws is not None and is_ws_connected(ws):
            await ws.close(code=code, reason=reason)

    # =========================================================================
    # Heartbeat tracking and cleanup (delegate to cleanup)
    # =========================================================================

    def record_heartbeat(self, connection_id: str) -> None:
        """Record inbound activity from a connection."""
        self._cleanup.record_heartbeat(connection_id)

    async def cleanup_stale_connections(self) -> int:
        """Close and remove connections without recent activity."""
        return await self._cleanup.cleanup_stale_connections()

    async def cleanup_dead_connections(self) -> int:
        """Close and remove connections whose delivery failed."""
        return await self._cleanup.cleanup_dead_connections()

    # =========================================================================
    # Statistics (delegate to stats)
    # =========================================================================

    async def get_stats(self) -> dict[str, Any]:
        return await self._stats.get_stats()

    def get_stats_sync(self) -> dict[str, Any]:
        """Get connection statistics (sync version for health check)."""
        return self._stats.get_stats_sync()

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> int:
        """
        Graceful shutdown: flush pending frames, close every socket with
        1001 and purge all session state.

        Returns:
            Number of sockets closed.
        """
        self._shutdown = True
        logger.info("Match gateway manager shutting down", connections=self._registry.count)

        writers = list(self._writers.values())
        if writers:
            await asyncio.gather(
                *[w.drain(WSConstants.SHUTDOWN_DRAIN_TIMEOUT) for w in writers],
                return_exceptions=True,
            )

        connection_ids = list(self._sockets)

        async def close_one(connection_id: str) -> bool:
            try:
                await self._close_socket(connection_id, WSCloseCode.GOING_AWAY, "Server shutdown")
                return True
            except Exception:
                return False

        results = await asyncio.gather(
            *[close_one(cid) for cid in connection_ids],
            return_exceptions=True,
        )
        closed = sum(1 for r in results if r is True)

        for connection_id in connection_ids:
            try:
                await self.disconnect(connection_id)
            except Exception as e:
                logger.warning("Error disconnecting during shutdown", connection_id=connection_id, error=str(e))

        logger.info("Match gateway shutdown complete", closed=closed)
        return closed

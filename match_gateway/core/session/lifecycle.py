"""
Session Lifecycle Manager.

Single entry point for every transport event of a connection:
connect, the inbound events (join, next, offer, answer, ice-candidate,
chat, block) and disconnect.

Concurrency:
- One asyncio.Lock (the state lock) serializes every mutation of the
  registry, the waiting pool, the block set and any partner reference.
- Nothing inside the critical section awaits. Outbound frames are queued
  with put_nowait, so a pairing is applied to both sides atomically.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from match_shared.config.logging import get_logger
from match_gateway.components.connection.record import Connection, ConnectionState
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.core.constants import InboundEvent, OutboundEvent, RELAY_EVENTS
from match_gateway.components.core.errors import NotPaired
from match_gateway.components.matching.blocks import BlockRegistry
from match_gateway.components.matching.coordinator import MatchCoordinator
from match_gateway.components.matching.pool import WaitingPool
from match_gateway.components.metrics.collector import MetricsCollector
from match_gateway.components.relay.signal_relay import SignalRelay

logger = get_logger(__name__)

Handler = Callable[[Connection, Any], None]


class SessionLifecycle:
    """
    Drives the per-connection state machine.

    Usage:
        lifecycle = SessionLifecycle(ConnectionRegistry())
        conn = await lifecycle.connect("ana@uni.edu")
        await lifecycle.dispatch(conn.id, "join")
        ...
        await lifecycle.disconnect(conn.id)
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        pool: WaitingPool | None = None,
        blocks: BlockRegistry | None = None,
        metrics: MetricsCollector | None = None,
        on_send_failed: Callable[[Connection], None] | None = None,
    ) -> None:
        self._registry = registry
        self._pool = pool if pool is not None else WaitingPool()
        self._blocks = blocks if blocks is not None else BlockRegistry()
        self._metrics = metrics
        self._on_send_failed = on_send_failed

        self._state_lock = asyncio.Lock()
        self._coordinator = MatchCoordinator(
            registry, self._pool, self._blocks, metrics, on_send_failed
        )
        self._relay = SignalRelay(registry, metrics, on_send_failed)

        self._handlers: dict[InboundEvent, Handler] = {
            InboundEvent.JOIN: self._on_join,
            InboundEvent.NEXT: self._on_next,
            InboundEvent.BLOCK: self._on_block,
        }
        for inbound in RELAY_EVENTS:
            self._handlers[inbound] = self._on_relay_factory(inbound)

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def pool(self) -> WaitingPool:
        return self._pool

    @property
    def blocks(self) -> BlockRegistry:
        return self._blocks

    # =========================================================================
    # Transport events
    # =========================================================================

    async def connect(self, identity: str) -> Connection:
        """
        Register a connection for an already-verified identity.

        Raises:
            ConnectionLimitExceeded: If a connection cap is reached.
        """
        async with self._state_lock:
            conn = self._registry.register(identity)
        return conn

    async def dispatch(self, connection_id: str, event: str | InboundEvent, data: Any = None) -> bool:
        """
        Apply one inbound event.

        Unknown events, unknown connections and events whose precondition
        fails are dropped silently.

        Returns:
            True if a handler ran, False if the event was dropped.
        """
        try:
            inbound = InboundEvent(event)
        except ValueError:
            logger.debug("Unknown event dropped", connection_id=connection_id, event=str(event)[:50])
            return False

        handler = self._handlers[inbound]
        async with self._state_lock:
            conn = self._registry.get(connection_id)
            if conn is None:
                logger.debug("Event for unknown connection dropped", connection_id=connection_id, event=inbound.value)
                return False
            try:
                handler(conn, data)
            except NotPaired as e:
                logger.debug("Event dropped, not paired", connection_id=e.connection_id, event=inbound.value)
                return False
        return True

    async def disconnect(self, connection_id: str) -> Connection | None:
        """
        Purge a connection from the pool, its pairing and the registry.

        Idempotent. A paired partner receives `partner_left` and goes IDLE.

        Returns:
            The removed Connection, or None if it was already gone.
        """
        async with self._state_lock:
            conn = self._registry.get(connection_id)
            if conn is None:
                return None
            self._coordinator.on_disconnect(conn)
        return conn

    # =========================================================================
    # Handlers (called with the state lock held)
    # =========================================================================

    def _on_join(self, conn: Connection, data: Any) -> None:
        if conn.state is not ConnectionState.IDLE:
            logger.debug("join ignored", connection_id=conn.id, state=conn.state.value)
            return
        self._coordinator.request_match(conn)

    def _on_next(self, conn: Connection, data: Any) -> None:
        if conn.state is ConnectionState.IDLE:
            logger.debug("next ignored while idle", connection_id=conn.id)
            return
        self._coordinator.leave_queue_or_pair(conn)
        self._coordinator.request_match(conn)

    def _on_block(self, conn: Connection, data: Any) -> None:
        partner = self._registry.get(conn.partner_id) if conn.is_paired else None
        if partner is not None:
            if self._blocks.block(conn.identity, partner.identity) and self._metrics:
                self._metrics.increment_blocks()
            self._coordinator.leave_queue_or_pair(conn)
        else:
            logger.debug("block without partner, nothing recorded", connection_id=conn.id)
        # Acknowledged in every case so the client can reset its UI.
        if not conn.send(OutboundEvent.BLOCKED_ACK) and self._on_send_failed is not None:
            self._on_send_failed(conn)

    def _on_relay_factory(self, inbound: InboundEvent) -> Handler:
        outbound = RELAY_EVENTS[inbound]

        def on_relay(conn: Connection, data: Any) -> None:
            if not conn.is_paired:
                raise NotPaired(conn.id)
            self._relay.relay(conn, outbound, data)

        on_relay.__name__ = f"_on_{inbound.name.lower()}"
        return on_relay

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_stats(self) -> dict[str, int]:
        """Matching statistics from a lock-free read."""
        connections = self._registry.snapshot()
        return {
            "waiting": len(self._pool),
            "paired": sum(1 for c in connections if c.is_paired),
            "blocked_pairs": len(self._blocks),
        }

"""
Match Coordinator.

Owns the IDLE -> WAITING -> PAIRED -> IDLE transitions. Every method must be
called with the lifecycle state lock held; none of them awaits, so a pairing
is always applied to both sides before any other task can observe it.
"""

from __future__ import annotations

from typing import Callable

from match_shared.config.logging import get_logger
from match_gateway.components.connection.record import Connection, ConnectionState
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.core.constants import OutboundEvent
from match_gateway.components.core.errors import SelfMatch, StaleReference
from match_gateway.components.matching.blocks import BlockRegistry
from match_gateway.components.matching.pool import WaitingPool
from match_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class MatchCoordinator:
    """
    Pairs waiting connections in arrival order.

    Args:
        registry: Live connection table.
        pool: FIFO of waiting connection ids.
        blocks: Mutual block relationships.
        metrics: Optional metrics collector.
        on_send_failed: Called with a connection whose outbox overflowed.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        pool: WaitingPool,
        blocks: BlockRegistry,
        metrics: MetricsCollector | None = None,
        on_send_failed: Callable[[Connection], None] | None = None,
    ) -> None:
        self._registry = registry
        self._pool = pool
        self._blocks = blocks
        self._metrics = metrics
        self._on_send_failed = on_send_failed

    def _notify(self, conn: Connection, event: OutboundEvent, data=None) -> None:
        if not conn.send(event, data) and self._on_send_failed is not None:
            self._on_send_failed(conn)

    def _eligible_for(self, conn: Connection) -> Callable[[str], bool]:
        def eligible(candidate_id: str) -> bool:
            if candidate_id == conn.id:
                return False
            candidate = self._registry.get(candidate_id)
            if candidate is None:
                return False
            return not self._blocks.is_blocked(conn.identity, candidate.identity)

        return eligible

    def _purge_vanished(self) -> None:
        """Drop pool entries whose connection is no longer registered."""
        for candidate_id in self._pool.snapshot():
            if candidate_id not in self._registry:
                self._pool.remove(candidate_id)
                logger.warning("Purged vanished connection from waiting pool", connection_id=candidate_id)

    def request_match(self, conn: Connection) -> Connection | None:
        """
        Pair `conn` with the oldest eligible waiting connection, or enqueue it.

        No-op while `conn` is already WAITING or PAIRED.

        Returns:
            The new partner, or None if `conn` was put in the waiting pool.
        """
        if conn.state is not ConnectionState.IDLE:
            logger.debug("request_match ignored", connection_id=conn.id, state=conn.state.value)
            return None

        self._purge_vanished()
        partner_id = self._pool.pop_first(self._eligible_for(conn))
        partner = self._registry.get(partner_id)

        if partner is None:
            self._pool.enqueue(conn.id)
            conn.state = ConnectionState.WAITING
            if self._metrics:
                self._metrics.increment_waits()
            self._notify(conn, OutboundEvent.WAITING)
            logger.debug("Connection waiting", connection_id=conn.id, pool_size=len(self._pool))
            return None

        if partner is conn:
            raise SelfMatch(conn.id)

        partner.state = ConnectionState.PAIRED
        partner.partner_id = conn.id
        partner.initiator = False
        conn.state = ConnectionState.PAIRED
        conn.partner_id = partner.id
        conn.initiator = True

        if self._metrics:
            self._metrics.increment_matches()
        self._notify(partner, OutboundEvent.MATCHED, {"initiator": False})
        self._notify(conn, OutboundEvent.MATCHED, {"initiator": True})

        logger.info(
            "Connections matched",
            initiator_id=conn.id,
            responder_id=partner.id,
            pool_size=len(self._pool),
        )
        return partner

    def _unpair(self, conn: Connection) -> Connection:
        """
        Clear the pairing on both sides.

        Raises:
            StaleReference: The partner is no longer registered. `conn` is
                reset to IDLE before raising.
        """
        partner_id = conn.partner_id
        partner = self._registry.get(partner_id)

        conn.state = ConnectionState.IDLE
        conn.partner_id = None
        conn.initiator = False

        if partner is None or partner.partner_id != conn.id:
            raise StaleReference(conn.id, partner_id or "")

        partner.state = ConnectionState.IDLE
        partner.partner_id = None
        partner.initiator = False
        return partner

    def leave_queue_or_pair(self, conn: Connection) -> Connection | None:
        """
        Return `conn` to IDLE from whatever state it is in.

        A former partner is told `partner_left` and becomes IDLE too; it is
        not re-enqueued.

        Returns:
            The former partner, if there was one still alive.
        """
        if conn.state is ConnectionState.WAITING:
            self._pool.remove(conn.id)
            conn.state = ConnectionState.IDLE
            return None

        if conn.state is not ConnectionState.PAIRED:
            return None

        try:
            partner = self._unpair(conn)
        except StaleReference as e:
            logger.warning(
                "Pairing referenced a vanished partner",
                connection_id=e.connection_id,
                partner_id=e.partner_id,
            )
            return None

        if self._metrics:
            self._metrics.increment_partner_left()
        self._notify(partner, OutboundEvent.PARTNER_LEFT)
        logger.debug("Pairing dissolved", connection_id=conn.id, partner_id=partner.id)
        return partner

    def on_disconnect(self, conn: Connection) -> Connection | None:
        """
        Purge every reference to `conn` and unregister it.

        Returns:
            The former partner, if any.
        """
        partner = self.leave_queue_or_pair(conn)
        # A connection must never linger in the pool once unregistered.
        self._pool.remove(conn.id)
        self._registry.unregister(conn.id)
        return partner

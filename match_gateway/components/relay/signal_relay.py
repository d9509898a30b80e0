"""
Signal Relay.

Forwards opaque signaling and chat payloads between paired connections.
Payloads are never parsed or validated; the gateway only routes them.
"""

from __future__ import annotations

from typing import Any, Callable

from match_shared.config.logging import get_logger
from match_gateway.components.connection.record import Connection
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.core.constants import OutboundEvent
from match_gateway.components.core.errors import NotPaired, StaleReference
from match_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class SignalRelay:
    """Delivers a payload to the sender's current partner."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        metrics: MetricsCollector | None = None,
        on_send_failed: Callable[[Connection], None] | None = None,
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._on_send_failed = on_send_failed

    def _resolve_partner(self, from_conn: Connection) -> Connection:
        """
        Raises:
            NotPaired: `from_conn` has no partner.
            StaleReference: The partner is gone from the registry.
        """
        if not from_conn.is_paired or from_conn.partner_id is None:
            raise NotPaired(from_conn.id)
        partner = self._registry.get(from_conn.partner_id)
        if partner is None or partner.partner_id != from_conn.id:
            raise StaleReference(from_conn.id, from_conn.partner_id)
        return partner

    def relay(self, from_conn: Connection, kind: OutboundEvent, payload: Any) -> bool:
        """
        Forward `payload` unmodified to the partner of `from_conn`.

        Must be called with the state lock held so the partner lookup is
        atomic with respect to a concurrent disconnect.

        Returns:
            True if the frame was queued for the partner, False if it was
            dropped (no partner, vanished partner or full outbox).
        """
        try:
            partner = self._resolve_partner(from_conn)
        except NotPaired as e:
            logger.debug("Relay dropped", kind=kind.value, connection_id=from_conn.id, reason=type(e).__name__)
            if self._metrics:
                self._metrics.increment_relay_dropped()
            return False

        if not partner.send(kind, payload):
            if self._metrics:
                self._metrics.increment_relay_dropped()
            if self._on_send_failed is not None:
                self._on_send_failed(partner)
            return False

        if self._metrics:
            self._metrics.increment_relay_delivered(kind.value)
        return True

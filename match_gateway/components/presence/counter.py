"""
Presence Counter.

Periodically broadcasts the number of live connections as `online_count`.
The count is always recomputed from the registry, never kept separately.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from match_shared.config.logging import get_logger
from match_gateway.components.connection.record import Connection
from match_gateway.components.connection.registry import ConnectionRegistry
from match_gateway.components.core.constants import OutboundEvent
from match_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class PresenceCounter:
    """
    Background broadcaster of the online count.

    Works from a registry snapshot: slight staleness is tolerated, so no
    state lock is taken.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        interval_seconds: float = 2.0,
        metrics: MetricsCollector | None = None,
        on_send_failed: Callable[[Connection], None] | None = None,
    ) -> None:
        self._registry = registry
        self._interval = interval_seconds
        self._metrics = metrics
        self._on_send_failed = on_send_failed

    @property
    def interval(self) -> float:
        return self._interval

    def broadcast_once(self) -> int:
        """
        Send `online_count` to every live connection.

        Returns:
            The count that was broadcast.
        """
        recipients = self._registry.snapshot()
        count = len(recipients)
        failed = 0
        for conn in recipients:
            if not conn.send(OutboundEvent.ONLINE_COUNT, count):
                failed += 1
                if self._on_send_failed is not None:
                    self._on_send_failed(conn)

        if self._metrics:
            self._metrics.increment_presence_broadcasts()
            if failed:
                self._metrics.add_presence_failed_recipients(failed)
        return count

    async def run(self) -> None:
        """Broadcast every `interval` seconds until cancelled."""
        logger.info("Presence broadcaster started", interval=self._interval)
        while True:
            try:
                await asyncio.sleep(self._interval)
                self.broadcast_once()
            except asyncio.CancelledError:
                logger.info("Presence broadcaster stopped")
                break
            except Exception as e:
                logger.error("Error in presence broadcast", error=str(e))

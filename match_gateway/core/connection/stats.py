"""
Connection Statistics.

Aggregates statistics from the registry, session state, heartbeat tracker
and metrics collector.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from match_gateway.components.connection.heartbeat import HeartbeatTracker
    from match_gateway.components.connection.registry import ConnectionRegistry
    from match_gateway.components.metrics.collector import MetricsCollector
    from match_gateway.core.session.lifecycle import SessionLifecycle


class ConnectionStats:
    """
    Aggregates connection statistics from components.

    Provides both async and sync versions:
    - Async: detailed stats for the metrics endpoint
    - Sync: lighter stats for the health check
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        lifecycle: "SessionLifecycle",
        metrics: "MetricsCollector",
        heartbeat_tracker: "HeartbeatTracker",
        get_dead_connections_count: Callable[[], int],
    ) -> None:
        self._registry = registry
        self._lifecycle = lifecycle
        self._metrics = metrics
        self._heartbeat_tracker = heartbeat_tracker
        self._get_dead_connections_count = get_dead_connections_count

    def _base_stats(self) -> dict[str, Any]:
        registry_stats = self._registry.get_stats()
        total = registry_stats["total_connections"]
        max_total = registry_stats["max_connections"]
        return {
            "total_connections": total,
            "max_connections": max_total,
            "utilization_percent": round(total / max(1, max_total) * 100, 1) if max_total else 0.0,
            "identities_connected": registry_stats["identities_connected"],
            **self._lifecycle.get_stats(),
            "metrics": self._metrics.get_snapshot(),
        }

    async def get_stats(self) -> dict[str, Any]:
        """Comprehensive statistics, including heartbeat ages."""
        stats = self._base_stats()
        stats["dead_connections_pending"] = self._get_dead_connections_count()
        stats["heartbeat_stats"] = self._heartbeat_tracker.get_stats()
        return stats

    def get_stats_sync(self) -> dict[str, Any]:
        """Statistics for the health check."""
        return self._base_stats()

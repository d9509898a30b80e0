"""
Prometheus Metrics Export for the match gateway.

Formats internal metrics in Prometheus text exposition format.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from match_gateway.connection_manager import ConnectionManager


class MetricType(str, Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"


# (stats key, metric suffix, help text, type); values come from get_stats()
_GAUGES: list[tuple[str, str, str]] = [
    ("total_connections", "connections_total", "Current number of live connections"),
    ("max_connections", "connections_max", "Maximum allowed connections (0 = unlimited)"),
    ("identities_connected", "identities_connected", "Distinct identities connected"),
    ("waiting", "waiting_pool_size", "Connections in the waiting pool"),
    ("paired", "paired_connections", "Connections currently paired"),
    ("blocked_pairs", "blocked_pairs", "Blocked identity pairs held in memory"),
    ("dead_connections_pending", "dead_connections_pending", "Dead connections pending cleanup"),
]

# (metrics key, metric suffix, help text)
_COUNTERS: list[tuple[str, str, str]] = [
    ("connections_accepted", "connections_accepted", "Connections accepted"),
    ("connections_closed", "connections_closed", "Connections closed"),
    ("connections_stale_cleaned", "connections_stale_cleaned", "Connections closed for missing heartbeats"),
    ("connections_dead_cleaned", "connections_dead_cleaned", "Connections cleaned after send failures"),
    ("matches_total", "matches_total", "Pairings formed"),
    ("matches_waits", "matches_waits", "Connections that entered the waiting pool"),
    ("matches_partner_left", "partner_left_total", "partner_left notifications sent"),
    ("matches_blocks", "blocks_total", "Block relationships recorded"),
    ("relays_delivered", "relays_delivered", "Signaling/chat payloads delivered"),
    ("relays_dropped", "relays_dropped", "Signaling/chat payloads dropped (no partner)"),
    ("presence_broadcasts", "presence_broadcasts", "online_count broadcasts sent"),
]


class PrometheusFormatter:
    """
    Formats metrics in Prometheus text exposition format.

    Reference: https://prometheus.io/docs/instrumenting/exposition_formats/
    """

    def __init__(self, prefix: str = "matchgateway"):
        self._prefix = prefix

    def format_metric(
        self,
        name: str,
        value: float | int,
        help_text: str,
        metric_type: MetricType,
        labels: dict[str, str] | None = None,
    ) -> str:
        """Format a single metric in Prometheus format."""
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
        ]
        if labels:
            label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
            lines.append(f"{name}{{{label_str}}} {value}")
        else:
            lines.append(f"{name} {value}")
        return "\n".join(lines)

    def format_all_metrics(self, stats: dict[str, Any]) -> str:
        """
        Format all metrics from ConnectionManager stats.

        Args:
            stats: Stats dictionary from ConnectionManager.get_stats().
        """
        lines: list[str] = []
        metrics = stats.get("metrics", {})

        for key, suffix, help_text in _GAUGES:
            lines.append(self.format_metric(
                f"{self._prefix}_{suffix}", stats.get(key, 0), help_text, MetricType.GAUGE,
            ))

        for key, suffix, help_text in _COUNTERS:
            lines.append(self.format_metric(
                f"{self._prefix}_{suffix}", metrics.get(key, 0), help_text, MetricType.COUNTER,
            ))

        name = f"{self._prefix}_connections_rejected_total"
        lines.append(f"# HELP {name} Rejected connections by reason")
        lines.append(f"# TYPE {name} counter")
        lines.append(f'{name}{{reason="auth"}} {metrics.get("connections_rejected_auth", 0)}')
        lines.append(f'{name}{{reason="limit"}} {metrics.get("connections_rejected_limit", 0)}')

        name = f"{self._prefix}_relays_by_kind"
        lines.append(f"# HELP {name} Delivered payloads by kind")
        lines.append(f"# TYPE {name} counter")
        for kind, count in sorted(metrics.get("relays_by_kind", {}).items()):
            lines.append(f'{name}{{kind="{kind}"}} {count}')

        lines.append(self.format_metric(
            f"{self._prefix}_scrape_timestamp",
            int(time.time()),
            "Timestamp of metrics scrape",
            MetricType.GAUGE,
        ))

        return "\n".join(lines) + "\n"


async def generate_prometheus_metrics(manager: "ConnectionManager") -> str:
    """Generate Prometheus metrics from the ConnectionManager."""
    stats = await manager.get_stats()
    return PrometheusFormatter().format_all_metrics(stats)

"""
Metrics components: in-process counters and Prometheus exposition.
"""

from match_gateway.components.metrics.collector import MetricsCollector
from match_gateway.components.metrics.prometheus import (
    PrometheusFormatter,
    generate_prometheus_metrics,
)

__all__ = [
    "MetricsCollector",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
]

"""
Connection Management Module.

Components composed by ConnectionManager:
- writer.py: Per-connection outbox draining
- cleanup.py: Stale/dead connection cleanup
- stats.py: Statistics aggregation
"""

from match_gateway.core.connection.writer import OutboundWriter, is_ws_connected
from match_gateway.core.connection.cleanup import ConnectionCleanup
from match_gateway.core.connection.stats import ConnectionStats

__all__ = [
    "OutboundWriter",
    "ConnectionCleanup",
    "ConnectionStats",
    "is_ws_connected",
]

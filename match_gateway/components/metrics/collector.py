"""
Metrics Collector for the match gateway.

Centralizes counters for observability. Counters are bumped from inside
the state lock's critical section, so increments are synchronous and
guarded by a threading.Lock to allow reads from the sync health check.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ConnectionMetrics:
    """Metrics for connection management."""
    accepted: int = 0
    closed: int = 0
    rejected_auth: int = 0
    rejected_limit: int = 0
    stale_cleaned: int = 0
    dead_cleaned: int = 0


@dataclass
class MatchMetrics:
    """Metrics for the matchmaking state machine."""
    matches: int = 0
    waits: int = 0
    partner_left: int = 0
    blocks: int = 0


@dataclass
class RelayMetrics:
    """Metrics for signal relay."""
    delivered: int = 0
    dropped: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)


@dataclass
class PresenceMetrics:
    """Metrics for presence broadcasts."""
    broadcasts: int = 0
    recipients_failed: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_matches()
        stats = metrics.get_snapshot()
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connection = ConnectionMetrics()
        self._match = MatchMetrics()
        self._relay = RelayMetrics()
        self._presence = PresenceMetrics()

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_connection_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_connection_closed(self) -> None:
        with self._lock:
            self._connection.closed += 1

    def increment_connection_rejected_auth(self) -> None:
        """Increment count of connections rejected due to auth failure."""
        with self._lock:
            self._connection.rejected_auth += 1

    def increment_connection_rejected_limit(self) -> None:
        """Increment count of connections rejected due to capacity."""
        with self._lock:
            self._connection.rejected_limit += 1

    def add_stale_cleaned(self, count: int) -> None:
        with self._lock:
            self._connection.stale_cleaned += count

    def add_dead_cleaned(self, count: int) -> None:
        with self._lock:
            self._connection.dead_cleaned += count

    # ==========================================================================
    # Match Metrics
    # ==========================================================================

    def increment_matches(self) -> None:
        with self._lock:
            self._match.matches += 1

    def increment_waits(self) -> None:
        with self._lock:
            self._match.waits += 1

    def increment_partner_left(self) -> None:
        with self._lock:
            self._match.partner_left += 1

    def increment_blocks(self) -> None:
        with self._lock:
            self._match.blocks += 1

    # ==========================================================================
    # Relay Metrics
    # ==========================================================================

    def increment_relay_delivered(self, kind: str) -> None:
        with self._lock:
            self._relay.delivered += 1
            self._relay.by_kind[kind] = self._relay.by_kind.get(kind, 0) + 1

    def increment_relay_dropped(self) -> None:
        with self._lock:
            self._relay.dropped += 1

    # ==========================================================================
    # Presence Metrics
    # ==========================================================================

    def increment_presence_broadcasts(self) -> None:
        with self._lock:
            self._presence.broadcasts += 1

    def add_presence_failed_recipients(self, count: int) -> None:
        with self._lock:
            self._presence.recipients_failed += count

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Names follow {category}_{metric}; returns a copy.
        """
        with self._lock:
            return {
                "connections_accepted": self._connection.accepted,
                "connections_closed": self._connection.closed,
                "connections_rejected_auth": self._connection.rejected_auth,
                "connections_rejected_limit": self._connection.rejected_limit,
                "connections_stale_cleaned": self._connection.stale_cleaned,
                "connections_dead_cleaned": self._connection.dead_cleaned,
                "matches_total": self._match.matches,
                "matches_waits": self._match.waits,
                "matches_partner_left": self._match.partner_left,
                "matches_blocks": self._match.blocks,
                "relays_delivered": self._relay.delivered,
                "relays_dropped": self._relay.dropped,
                "relays_by_kind": dict(self._relay.by_kind),
                "presence_broadcasts": self._presence.broadcasts,
                "presence_failed_recipients": self._presence.recipients_failed,
            }

    def reset(self) -> dict[str, Any]:
        """Reset all metrics and return the previous values."""
        snapshot = self.get_snapshot()
        with self._lock:
            self._connection = ConnectionMetrics()
            self._match = MatchMetrics()
            self._relay = RelayMetrics()
            self._presence = PresenceMetrics()
        return snapshot

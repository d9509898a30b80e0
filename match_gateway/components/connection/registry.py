"""
Connection Registry - the table of every live connection.

Indices maintained:
- by id: connection_id -> Connection
- by identity: identity -> set[connection_id] (same identity may hold several)

Thread Safety:
- Mutations are performed by the SessionLifecycle while it holds the
  state lock. Read-only views are immutable (MappingProxyType).
"""

from __future__ import annotations

import asyncio
from types import MappingProxyType

from match_shared.config.logging import get_logger, mask_email
from match_gateway.components.connection.record import Connection
from match_gateway.components.core.errors import ConnectionLimitExceeded

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    Owns the Connection records for this process.

    `unregister` is idempotent and does no pairing cleanup: callers must
    run the match coordinator first so no partner or pool entry keeps
    pointing at the removed connection.
    """

    def __init__(
        self,
        max_total_connections: int = 0,
        max_connections_per_identity: int = 0,
        outbox_size: int = 256,
    ) -> None:
        """
        Args:
            max_total_connections: Global cap (0 = unlimited).
            max_connections_per_identity: Per-identity cap (0 = unlimited).
            outbox_size: Maximum pending outbound frames per connection.
        """
        self._max_total = max_total_connections
        self._max_per_identity = max_connections_per_identity
        self._outbox_size = outbox_size

        self._connections: dict[str, Connection] = {}
        self._by_identity: dict[str, set[str]] = {}

    @property
    def connections(self) -> MappingProxyType[str, Connection]:
        """Live connections by id (immutable view)."""
        return MappingProxyType(self._connections)

    @property
    def count(self) -> int:
        """Number of live connections."""
        return len(self._connections)

    def register(self, identity: str) -> Connection:
        """
        Create and register a connection for a verified identity.

        Raises:
            ConnectionLimitExceeded: If a configured cap is reached.
        """
        if self._max_total and len(self._connections) >= self._max_total:
            raise ConnectionLimitExceeded(
                f"Server at capacity ({self._max_total} connections)"
            )

        existing = self._by_identity.get(identity, set())
        if self._max_per_identity and len(existing) >= self._max_per_identity:
            raise ConnectionLimitExceeded(
                f"Identity exceeded max connections ({self._max_per_identity})"
            )

        conn = Connection(
            identity=identity,
            outbox=asyncio.Queue(maxsize=self._outbox_size),
        )
        self._connections[conn.id] = conn
        self._by_identity.setdefault(identity, set()).add(conn.id)

        logger.debug(
            "Connection registered",
            connection_id=conn.id,
            identity=mask_email(identity),
            identity_connections=len(self._by_identity[identity]),
        )
        return conn

    def unregister(self, connection_id: str) -> Connection | None:
        """
        Remove a connection. Idempotent.

        Returns:
            The removed Connection, or None if it was not registered.
        """
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return None

        ids = self._by_identity.get(conn.identity)
        if ids is not None:
            ids.discard(connection_id)
            if not ids:
                del self._by_identity[conn.identity]

        logger.debug("Connection unregistered", connection_id=connection_id)
        return conn

    def get(self, connection_id: str | None) -> Connection | None:
        """Look up a live connection, None if unknown or already removed."""
        if connection_id is None:
            return None
        return self._connections.get(connection_id)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def get_identity_connections(self, identity: str) -> list[Connection]:
        """All live connections held by an identity."""
        return [
            self._connections[cid]
            for cid in self._by_identity.get(identity, ())
            if cid in self._connections
        ]

    def snapshot(self) -> list[Connection]:
        """Copy of the live connections, safe to iterate across awaits."""
        return list(self._connections.values())

    def get_stats(self) -> dict[str, int]:
        """Registry statistics."""
        return {
            "total_connections": len(self._connections),
            "identities_connected": len(self._by_identity),
            "max_connections": self._max_total,
        }

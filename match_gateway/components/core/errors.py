"""
Gateway error taxonomy.

Only Unauthenticated and ConnectionLimitExceeded ever reach the transport
layer (they end in a close frame). The pairing errors are raised inside
the state machine and turned into silent drops by the lifecycle manager,
because transport races make them a normal occurrence.
"""

from match_shared.security.auth import Unauthenticated

__all__ = [
    "MatchGatewayError",
    "Unauthenticated",
    "NotPaired",
    "SelfMatch",
    "StaleReference",
    "ConnectionLimitExceeded",
]


class MatchGatewayError(Exception):
    """Base class for matchmaking/relay errors."""


class NotPaired(MatchGatewayError):
    """Relay or block attempted by a connection that has no partner."""

    def __init__(self, connection_id: str):
        super().__init__(f"Connection {connection_id} is not paired")
        self.connection_id = connection_id


class StaleReference(NotPaired):
    """The partner referenced by a connection no longer exists."""

    def __init__(self, connection_id: str, partner_id: str):
        MatchGatewayError.__init__(
            self, f"Connection {connection_id} references vanished partner {partner_id}"
        )
        self.connection_id = connection_id
        self.partner_id = partner_id


class SelfMatch(MatchGatewayError):
    """A connection was about to be paired with itself."""


class ConnectionLimitExceeded(MatchGatewayError, ConnectionError):
    """Global or per-identity connection cap reached."""

"""
Authentication strategies for WebSocket connections.
"""

from match_gateway.components.auth.strategies import (
    AuthResult,
    AuthStrategy,
    IdentityTokenAuthStrategy,
    OriginValidationMixin,
)

__all__ = [
    "AuthResult",
    "AuthStrategy",
    "IdentityTokenAuthStrategy",
    "OriginValidationMixin",
]

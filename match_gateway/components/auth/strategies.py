"""
Authentication strategies for the match gateway.

A strategy turns the handshake (headers plus the `token` query parameter)
into an AuthResult. The endpoint closes the socket with the result's close
code when authentication fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from match_shared.config.logging import get_logger
from match_shared.config.settings import settings
from match_shared.security.auth import Unauthenticated, verify_identity_token
from match_gateway.components.core.constants import WSCloseCode, validate_websocket_origin

if TYPE_CHECKING:
    from fastapi import WebSocket


logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AuthResult:
    """
    Outcome of an authentication attempt.

    `data` holds {"identity": ...} on success. On failure `close_code` is
    what the socket is closed with and `audit_reason` is the short code
    written to the audit log.
    """

    success: bool
    data: dict[str, Any] | None = None
    error_message: str | None = None
    close_code: int = WSCloseCode.AUTH_FAILED
    audit_reason: str | None = None

    @classmethod
    def ok(cls, data: dict[str, Any]) -> "AuthResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, audit_reason: str = "auth_failed") -> "AuthResult":
        """Rejected credentials (4001)."""
        return cls(success=False, error_message=message, audit_reason=audit_reason)

    @classmethod
    def forbidden(cls, message: str, audit_reason: str = "forbidden") -> "AuthResult":
        """Credentials aside, the connection is not allowed (4003)."""
        return cls(
            success=False,
            error_message=message,
            close_code=WSCloseCode.FORBIDDEN,
            audit_reason=audit_reason,
        )


class AuthStrategy(ABC):
    """Pluggable authentication for WebSocket endpoints."""

    @abstractmethod
    async def authenticate(self, websocket: "WebSocket", token: str) -> AuthResult:
        """Authenticate an accepted socket using the token it presented."""


class OriginValidationMixin:
    """Checks the Origin header against ALLOWED_ORIGINS."""

    def validate_origin(self, websocket: "WebSocket") -> bool:
        return validate_websocket_origin(websocket.headers.get("origin"), settings)


class IdentityTokenAuthStrategy(AuthStrategy, OriginValidationMixin):
    """
    Accepts sockets that carry a valid identity token from an allowed origin.

    Origin is checked first (4003), then the token signature, expiry and
    identity claim (4001).
    """

    async def authenticate(self, websocket: "WebSocket", token: str) -> AuthResult:
        if not self.validate_origin(websocket):
            logger.warning("Connection from disallowed origin", origin=websocket.headers.get("origin"))
            return AuthResult.forbidden("Origin not allowed", audit_reason="invalid_origin")

        try:
            identity = verify_identity_token(token)
        except Unauthenticated as e:
            logger.warning("Identity token rejected", reason=e.reason)
            return AuthResult.fail("Authentication failed", audit_reason=e.reason)

        return AuthResult.ok({"identity": identity})

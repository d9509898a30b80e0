"""
Identity token utilities.

Identity tokens are HS256 JWTs produced by the external one-time-passcode
service once a participant has verified their email. The gateway only needs
the verified identity string out of them.
"""

from __future__ import annotations

import time
from typing import Any

import jwt

from match_shared.config.logging import get_logger, mask_email
from match_shared.config.settings import settings

logger = get_logger(__name__)


class Unauthenticated(Exception):
    """Raised when an identity token is missing, invalid or carries no identity."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def sign_identity_token(
    identity: str,
    ttl_seconds: int | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    """
    Sign an identity token for the given identity.

    The production issuer is the OTP service; this is used by the developer
    CLI and the test-suite to mint tokens the gateway will accept.

    Args:
        identity: Verified identity (email address).
        ttl_seconds: Token lifetime in seconds. Defaults to the configured days.
        extra_claims: Additional claims to embed.

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.identity_token_expire_days * 24 * 60 * 60

    now = int(time.time())
    data: dict[str, Any] = {
        **(extra_claims or {}),
        settings.jwt_identity_claim: identity,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    if settings.jwt_issuer:
        data["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        data["aud"] = settings.jwt_audience
    return jwt.encode(data, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_identity_claims(token: str | None) -> dict[str, Any]:
    """
    Verify and decode an identity token.

    Args:
        token: The JWT token string.

    Returns:
        Decoded token claims.

    Raises:
        Unauthenticated: If token is missing, malformed, expired or
            signed with the wrong key.
    """
    if not token:
        raise Unauthenticated("missing_token")

    options: dict[str, Any] = {"require": ["exp"]}
    kwargs: dict[str, Any] = {}
    if settings.jwt_audience:
        kwargs["audience"] = settings.jwt_audience
    else:
        options["verify_aud"] = False
    if settings.jwt_issuer:
        kwargs["issuer"] = settings.jwt_issuer

    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options=options,
            **kwargs,
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Identity token expired")
        raise Unauthenticated("token_expired")
    except jwt.InvalidTokenError as e:
        logger.debug("Identity token rejected", error=str(e))
        raise Unauthenticated("token_invalid")


def verify_identity_token(token: str | None) -> str:
    """
    Verify an identity token and return the identity it carries.

    Raises:
        Unauthenticated: If the token is invalid or has no identity claim.
    """
    claims = decode_identity_claims(token)
    identity = claims.get(settings.jwt_identity_claim)
    if not isinstance(identity, str) or not identity.strip():
        logger.warning(
            "Identity token without identity claim",
            claim=settings.jwt_identity_claim,
        )
        raise Unauthenticated("missing_identity_claim")

    identity = identity.strip()
    logger.debug("Identity token verified", identity=mask_email(identity))
    return identity

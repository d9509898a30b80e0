"""
Security module: identity token verification.
"""

from match_shared.security.auth import (
    sign_identity_token,
    verify_identity_token,
    decode_identity_claims,
    Unauthenticated,
)

__all__ = [
    "sign_identity_token",
    "verify_identity_token",
    "decode_identity_claims",
    "Unauthenticated",
]

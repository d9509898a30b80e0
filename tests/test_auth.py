"""
Tests for identity token verification and the WebSocket auth strategy.
"""

from unittest.mock import MagicMock

import jwt
import pytest

from match_shared.config.settings import settings
from match_shared.security.auth import (
    Unauthenticated,
    decode_identity_claims,
    sign_identity_token,
    verify_identity_token,
)
from match_gateway.components.auth.strategies import AuthResult, IdentityTokenAuthStrategy
from match_gateway.components.core.constants import WSCloseCode


class TestIdentityToken:

    def test_round_trip_returns_identity(self, identity_token):
        assert verify_identity_token(identity_token("ana@abes.ac.in")) == "ana@abes.ac.in"

    def test_extra_claims_are_kept(self):
        token = sign_identity_token("ana@abes.ac.in", extra_claims={"college": "abes"})
        assert decode_identity_claims(token)["college"] == "abes"

    def test_expired_token(self, identity_token):
        with pytest.raises(Unauthenticated) as exc:
            verify_identity_token(identity_token(ttl_seconds=-10))
        assert exc.value.reason == "token_expired"

    def test_wrong_secret(self):
        token = jwt.encode(
            {settings.jwt_identity_claim: "ana@abes.ac.in", "exp": 4102444800},
            "some-other-secret",
            algorithm="HS256",
        )
        with pytest.raises(Unauthenticated) as exc:
            verify_identity_token(token)
        assert exc.value.reason == "token_invalid"

    def test_garbage_token(self):
        with pytest.raises(Unauthenticated) as exc:
            verify_identity_token("not-a-jwt")
        assert exc.value.reason == "token_invalid"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, token):
        with pytest.raises(Unauthenticated) as exc:
            verify_identity_token(token)
        assert exc.value.reason == "missing_token"

    def test_missing_identity_claim(self):
        token = jwt.encode(
            {"sub": "42", "exp": 4102444800},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(Unauthenticated) as exc:
            verify_identity_token(token)
        assert exc.value.reason == "missing_identity_claim"


class TestIdentityTokenAuthStrategy:

    def _websocket(self, origin=None):
        ws = MagicMock()
        ws.headers = {"origin": origin} if origin else {}
        return ws

    @pytest.mark.asyncio
    async def test_valid_token(self, identity_token):
        result = await IdentityTokenAuthStrategy().authenticate(
            self._websocket(), identity_token("ben@abes.ac.in")
        )
        assert result.success
        assert result.data == {"identity": "ben@abes.ac.in"}

    @pytest.mark.asyncio
    async def test_invalid_token_closes_with_4001(self):
        result = await IdentityTokenAuthStrategy().authenticate(self._websocket(), "bad")
        assert not result.success
        assert result.close_code == WSCloseCode.AUTH_FAILED
        assert result.audit_reason == "token_invalid"

    @pytest.mark.asyncio
    async def test_disallowed_origin_closes_with_4003(self, monkeypatch, identity_token):
        monkeypatch.setattr(settings, "allowed_origins", "https://camconnect.app")
        strategy = IdentityTokenAuthStrategy()

        rejected = await strategy.authenticate(
            self._websocket("https://evil.example"), identity_token()
        )
        assert rejected.close_code == WSCloseCode.FORBIDDEN
        assert rejected.audit_reason == "invalid_origin"

        accepted = await strategy.authenticate(
            self._websocket("https://camconnect.app"), identity_token()
        )
        assert accepted.success


class TestAuthResult:

    def test_factories(self):
        assert AuthResult.ok({"identity": "x"}).success
        assert AuthResult.fail("nope").close_code == WSCloseCode.AUTH_FAILED
        assert AuthResult.forbidden("nope").close_code == WSCloseCode.FORBIDDEN

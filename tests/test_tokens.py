"""
tests/test_tokens.py -- Unit tests for auth/tokens.py (TokenCodec + hash_token).

Covers:
  - access and refresh tokens verify with their own secret only
  - issuer / audience mismatch and expiry are rejected
  - tampered and empty tokens are rejected with the same TokenInvalid
  - two tokens minted in the same second differ (jti)
  - hash_token is deterministic SHA-256 hex
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from auth.errors import TokenInvalid
from auth.tokens import TokenCodec, hash_token


class TestSignVerify:
    def test_access_roundtrip_claims(self, codec: TokenCodec) -> None:
        claims = codec.verify_access(codec.sign_access("user-1"))
        assert claims.sub == "user-1"
        assert claims.iss == "sessionward"
        assert claims.aud == "sessionward-api"
        assert claims.jti

    def test_access_expiry_matches_lifetime(self, codec: TokenCodec) -> None:
        now = datetime.now(timezone.utc)
        claims = codec.verify_access(codec.sign_access("user-1", now=now))
        assert claims.exp - claims.iat == 15 * 60

    def test_refresh_is_not_an_access_token(self, codec: TokenCodec) -> None:
        with pytest.raises(TokenInvalid):
            codec.verify_access(codec.sign_refresh("user-1"))

    def test_access_is_not_a_refresh_token(self, codec: TokenCodec) -> None:
        with pytest.raises(TokenInvalid):
            codec.verify_refresh(codec.sign_access("user-1"))

    def test_same_second_tokens_differ(self, codec: TokenCodec) -> None:
        now = datetime.now(timezone.utc)
        first = codec.sign_refresh("user-1", now=now)
        second = codec.sign_refresh("user-1", now=now)
        assert first != second
        assert hash_token(first) != hash_token(second)


class TestRejection:
    def test_expired_token(self, codec: TokenCodec) -> None:
        issued = datetime.now(timezone.utc) - timedelta(hours=1)
        with pytest.raises(TokenInvalid):
            codec.verify_access(codec.sign_access("user-1", now=issued))

    def test_wrong_issuer(self, codec: TokenCodec, settings_factory) -> None:
        other = TokenCodec(settings_factory(jwt_issuer="someone-else"))
        with pytest.raises(TokenInvalid):
            codec.verify_access(other.sign_access("user-1"))

    def test_wrong_audience(self, codec: TokenCodec, settings_factory) -> None:
        other = TokenCodec(settings_factory(jwt_audience="other-api"))
        with pytest.raises(TokenInvalid):
            codec.verify_refresh(other.sign_refresh("user-1"))

    def test_foreign_secret(self, codec: TokenCodec, settings_factory) -> None:
        other = TokenCodec(settings_factory(jwt_secret="c" * 48))
        with pytest.raises(TokenInvalid):
            codec.verify_access(other.sign_access("user-1"))

    def test_tampered_signature(self, codec: TokenCodec) -> None:
        token = codec.sign_access("user-1")
        tampered = token[:-2] + ("AA" if token[-2:] != "AA" else "BB")
        with pytest.raises(TokenInvalid):
            codec.verify_access(tampered)

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_garbage(self, codec: TokenCodec, token: str) -> None:
        with pytest.raises(TokenInvalid, match="Invalid or expired token."):
            codec.verify_access(token)


class TestHashToken:
    def test_deterministic_sha256_hex(self) -> None:
        assert hash_token("abc") == hashlib.sha256(b"abc").hexdigest()
        assert hash_token("abc") == hash_token("abc")
        assert len(hash_token("abc")) == 64

    def test_distinct_inputs(self) -> None:
        assert hash_token("abc") != hash_token("abd")


class TestLifetimes:
    def test_max_age_in_seconds(self, codec: TokenCodec) -> None:
        assert codec.access_max_age == 900
        assert codec.refresh_max_age == 30 * 24 * 3600

    def test_refresh_expires_at(self, codec: TokenCodec) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert codec.refresh_expires_at(now) == now + timedelta(days=30)

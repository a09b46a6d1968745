"""
auth/tokens.py -- JWT signing/verification and refresh-token hashing.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are two separate
       token classes signed with two separate secrets (JWT_SECRET and
       JWT_REFRESH_SECRET) and two separate lifetimes (15m / 30d by default).
       A refresh token therefore never verifies as an access token. Both carry
       iss and aud, and verification rejects a token if either is missing or
       mismatched.

  Failures: every structural, signature, issuer/audience or expiry problem
       raises the single TokenInvalid error. The message is the same in all
       cases -- a client must not learn whether its token was forged or merely
       stale.

  jti: each token carries a random jti. Without it, two tokens minted for the
       same user in the same second would be byte-identical, and their stored
       hashes would collide.

  Hashing: refresh tokens are stored as SHA-256(token). The token is already
       a high-entropy signed value, so a fast deterministic digest is the
       right tool: O(1) lookup by hash, and a read-only leak of the table
       yields nothing that can be presented as a session.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import TokenInvalid
from auth.models import TokenClaims
from core.config import Settings

logger = logging.getLogger("sessionward.auth.tokens")

_ALGORITHM = "HS256"

_REQUIRED_CLAIMS = {
    "require_sub": True,
    "require_exp": True,
    "require_iss": True,
    "require_aud": True,
}

_INVALID_MESSAGE = "Invalid or expired token."


# ---------------------------------------------------------------------------
# Hasher
# ---------------------------------------------------------------------------


def hash_token(token: str) -> str:
    """Return the SHA-256 hex digest of an opaque token string."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Signs and verifies access and refresh tokens.

    Signing is pure (no I/O). Verification checks signature, exp, iss and aud.

    Usage:
        codec = TokenCodec(get_settings())
        token = codec.sign_refresh(user.id)
        claims = codec.verify_refresh(token)   # raises TokenInvalid
    """

    def __init__(self, settings: Settings) -> None:
        self._access_secret = settings.jwt_secret
        self._refresh_secret = settings.jwt_refresh_secret
        self._access_lifetime = settings.access_token_lifetime
        self._refresh_lifetime = settings.refresh_token_lifetime
        self.issuer = settings.jwt_issuer
        self.audience = settings.jwt_audience

    # ------------------------------------------------------------------
    # Lifetimes
    # ------------------------------------------------------------------

    @property
    def access_max_age(self) -> int:
        return int(self._access_lifetime.total_seconds())

    @property
    def refresh_max_age(self) -> int:
        return int(self._refresh_lifetime.total_seconds())

    def refresh_expires_at(self, now: datetime | None = None) -> datetime:
        """Absolute expiry for a refresh record created at `now`."""
        now = now or datetime.now(timezone.utc)
        return now + self._refresh_lifetime

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign_access(self, user_id: str, now: datetime | None = None) -> str:
        return self._sign(user_id, self._access_secret, self._access_lifetime, now)

    def sign_refresh(self, user_id: str, now: datetime | None = None) -> str:
        return self._sign(user_id, self._refresh_secret, self._refresh_lifetime, now)

    def _sign(self, user_id: str, secret: str, lifetime: timedelta, now: datetime | None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(issued.timestamp()),
            "exp": int((issued + lifetime).timestamp()),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> TokenClaims:
        return self._verify(token, self._access_secret, "access")

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._verify(token, self._refresh_secret, "refresh")

    def _verify(self, token: str, secret: str, kind: str) -> TokenClaims:
        if not token:
            raise TokenInvalid(_INVALID_MESSAGE)
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options=_REQUIRED_CLAIMS,
            )
        except JWTError as exc:
            # The cause is for the server log only.
            logger.debug("%s token rejected: %s", kind, exc)
            raise TokenInvalid(_INVALID_MESSAGE) from exc

        sub = payload.get("sub")
        if not isinstance(sub, str) or not sub:
            raise TokenInvalid(_INVALID_MESSAGE)
        return TokenClaims(
            sub=sub,
            iss=payload["iss"],
            aud=payload["aud"],
            exp=int(payload["exp"]),
            iat=payload.get("iat"),
            jti=payload.get("jti"),
        )

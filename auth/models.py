"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
session coordinator do the work; these classes only own domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


@dataclass
class User:
    """A user as held by the identity store.

    hashed_password is a bcrypt hash. It never leaves the auth package:
    everything returned to a caller goes through to_public().
    """

    email: str
    hashed_password: str
    name: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_public(self) -> PublicUser:
        return PublicUser(
            id=self.id or "",
            email=self.email,
            name=self.name,
            created_at=self.created_at or "",
            updated_at=self.updated_at or "",
        )


@dataclass(frozen=True)
class PublicUser:
    """The externally visible view of a user. Never carries a password hash."""

    id: str
    email: str
    name: str | None
    created_at: str
    updated_at: str


class TokenState(str, Enum):
    ACTIVE = "active"
    ROTATED = "rotated"  # revoked by rotation, superseded by replaced_by
    REVOKED = "revoked"  # revoked by logout or revoke-all
    EXPIRED = "expired"


@dataclass
class RefreshTokenRecord:
    """One persisted refresh token.

    Only the SHA-256 hash of the token is stored. revoked only ever flips
    False -> True, and records are never deleted, so a re-presented rotated
    token is still recognised (and rejected) after rotation.
    """

    token_hash: str
    user_id: str
    expires_at: datetime
    revoked: bool = False
    replaced_by: str | None = None
    created_at: str | None = None
    id: int | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    def state(self, now: datetime | None = None) -> TokenState:
        if self.revoked:
            return TokenState.ROTATED if self.replaced_by else TokenState.REVOKED
        if self.is_expired(now):
            return TokenState.EXPIRED
        return TokenState.ACTIVE


@dataclass(frozen=True)
class TokenClaims:
    """Decoded and verified JWT claims."""

    sub: str
    iss: str
    aud: str
    exp: int
    iat: int | None = None
    jti: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """Result of login or refresh. Transient -- never persisted."""

    access_token: str
    refresh_token: str
    user: PublicUser

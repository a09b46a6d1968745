"""
auth/passwords.py -- Password hashing and the credential validator.

Passwords: bcrypt used directly (no passlib wrapper). Bcrypt's cost factor is
     the right choice for low-entropy secrets like passwords. Passwords longer
     than 72 bytes are truncated by bcrypt; the API layer caps input length
     well below that boundary's practical concern (max_length=128).

Timing equalization [C1]: CredentialValidator always runs one bcrypt
     comparison, against _DUMMY_HASH when the email is unknown. Response time
     therefore does not reveal whether an email is registered.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

if TYPE_CHECKING:
    from auth.models import PublicUser
    from auth.store import UserStore

logger = logging.getLogger("sessionward.auth.passwords")

_BCRYPT_ROUNDS = 12


def hash_password(plain: str, rounds: int = _BCRYPT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is treated as a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first failed login is not measurably
# faster or slower than later ones.
_DUMMY_HASH: str = hash_password("sessionward_timing_dummy")


class CredentialValidator:
    """Checks an email/password pair against the identity store.

    validate() returns the public view of the user on success and None on any
    failure. Callers cannot tell "no such email" from "wrong password".
    """

    def __init__(self, user_store: UserStore) -> None:
        self._users = user_store

    def validate(self, email: str, password: str) -> PublicUser | None:
        user = self._users.get_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(password, _DUMMY_HASH)
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user.to_public()

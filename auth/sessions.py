"""
auth/sessions.py -- SessionCoordinator: login, refresh, logout, revoke-all.

The coordinator is the only component that decides to mint, rotate or revoke
refresh tokens. It is built by explicit constructor injection so tests and the
CLI can assemble it without the FastAPI app:

    coordinator = SessionCoordinator(
        codec=TokenCodec(settings),
        refresh_store=RefreshTokenStore(settings.database_url),
        validator=CredentialValidator(user_store),
        user_store=user_store,
    )

Refresh-token lifecycle (per token):

    ACTIVE --rotate--> ROTATED   (terminal, superseded by its child)
    ACTIVE --revoke--> REVOKED   (terminal, logout / revoke-all)
    ACTIVE --time----> EXPIRED   (terminal, evaluated lazily on validate)

Error policy:
  Every refresh failure (bad signature, expired JWT, unknown, revoked,
  rotated or expired record, owner mismatch, deleted user, lost rotation
  race) is raised as Unauthorized with one fixed message. The real cause is
  logged. Infrastructure errors from the stores are not caught here.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import NoReturn

from auth.errors import (
    InvalidCredentials,
    RefreshTokenError,
    RefreshTokenRevoked,
    TokenInvalid,
    Unauthorized,
)
from auth.models import PublicUser, TokenPair, TokenState
from auth.passwords import CredentialValidator
from auth.store import RefreshTokenStore, UserStore
from auth.tokens import TokenCodec, hash_token

logger = logging.getLogger("sessionward.auth.sessions")

_REFRESH_REJECTED = "Invalid or expired refresh token"
LOGOUT_MESSAGE = "Successfully logged out"


class SessionCoordinator:
    def __init__(
        self,
        codec: TokenCodec,
        refresh_store: RefreshTokenStore,
        validator: CredentialValidator,
        user_store: UserStore,
        reuse_revokes_all: bool = False,
    ) -> None:
        self.codec = codec
        self.refresh_store = refresh_store
        self.validator = validator
        self.user_store = user_store
        self.reuse_revokes_all = reuse_revokes_all

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> TokenPair:
        """Check credentials and start a new refresh-token chain.

        Raises InvalidCredentials for an unknown email and a wrong password
        alike.
        """
        user = self.validator.validate(email, password)
        if user is None:
            logger.info("Login rejected")
            raise InvalidCredentials("Invalid email or password.")
        pair = self.issue_tokens(user)
        logger.info("Login succeeded for user %s", user.id)
        return pair

    def issue_tokens(self, user: PublicUser) -> TokenPair:
        """Mint an access/refresh pair and record the refresh token as ACTIVE."""
        access_token = self.codec.sign_access(user.id)
        refresh_token = self.codec.sign_refresh(user.id)
        self.refresh_store.create(user.id, refresh_token, self.codec.refresh_expires_at())
        return TokenPair(access_token=access_token, refresh_token=refresh_token, user=user)

    # ------------------------------------------------------------------
    # Refresh (rotation)
    # ------------------------------------------------------------------

    def refresh(self, presented_token: str, now: datetime | None = None) -> TokenPair:
        """Exchange a refresh token for a new pair, retiring the old token.

        `now` is the instant the stored record's expiry is judged against
        (default: current time). JWT expiry is always checked against the clock.

        The old record moves ACTIVE -> ROTATED in the same transaction that
        stores the new one. Presenting the old token again afterwards fails
        exactly like a revoked token.
        """
        try:
            claims = self.codec.verify_refresh(presented_token)
        except TokenInvalid as exc:
            self._reject("refresh token failed verification", exc)

        token_hash = hash_token(presented_token)
        try:
            record = self.refresh_store.validate(token_hash, now=now)
        except RefreshTokenRevoked as exc:
            self._handle_reuse(token_hash)
            self._reject("refresh token already revoked", exc)
        except RefreshTokenError as exc:
            self._reject(f"refresh token unusable ({type(exc).__name__})", exc)

        if record.user_id != claims.sub:
            self._reject("refresh token subject does not match its record")

        user = self.user_store.get_by_id(record.user_id)
        if user is None:
            # Deleted after issuance: a runtime condition, not a data fault.
            self._reject(f"owner {record.user_id} of refresh token no longer exists")

        new_access = self.codec.sign_access(user.id)
        new_refresh = self.codec.sign_refresh(user.id)
        try:
            self.refresh_store.rotate(
                presented_token, user.id, new_refresh, self.codec.refresh_expires_at()
            )
        except RefreshTokenError as exc:
            # Lost a race with a concurrent refresh of the same token.
            self._reject("refresh token rotated concurrently", exc)

        logger.info("Rotated refresh token for user %s", user.id)
        return TokenPair(access_token=new_access, refresh_token=new_refresh, user=user.to_public())

    # ------------------------------------------------------------------
    # Logout / revocation
    # ------------------------------------------------------------------

    def logout(self, presented_token: str | None) -> dict:
        """Revoke the presented refresh token, if any. Always succeeds."""
        if presented_token:
            revoked = self.refresh_store.revoke(hash_token(presented_token))
            logger.info("Logout (refresh token revoked=%s)", revoked)
        return {"message": LOGOUT_MESSAGE}

    def revoke_all(self, user_id: str) -> int:
        """Revoke every active refresh token of a user ("log out everywhere")."""
        count = self.refresh_store.revoke_all_for_user(user_id)
        logger.warning("Revoked %d refresh token(s) for user %s", count, user_id)
        return count

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _handle_reuse(self, token_hash: str) -> None:
        """Optionally treat a re-presented ROTATED token as theft."""
        if not self.reuse_revokes_all:
            return
        record = self.refresh_store.find_by_hash(token_hash)
        if record is not None and record.state() is TokenState.ROTATED:
            logger.warning("Rotated refresh token re-presented for user %s", record.user_id)
            self.revoke_all(record.user_id)

    @staticmethod
    def _reject(reason: str, cause: Exception | None = None) -> NoReturn:
        logger.info("Refresh rejected: %s", reason)
        raise Unauthorized(_REFRESH_REJECTED) from cause

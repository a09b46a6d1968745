"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SessionWard happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Used for the signing-secret policy: dev mode generates
      secrets with a warning, production mode refuses to start without them.

Security notes:
  [S1] Access and refresh tokens are signed with two different secrets. A
       refresh token must never verify as an access token and vice versa, so
       identical secrets are rejected at startup.

  [S2] Secrets shorter than 32 chars are rejected outright. HS256 relies on
       key entropy.

  [S3] Cookie strictness (secure + SameSite=strict) is tied to
       ENVIRONMENT=production, not to DEBUG, so a production deploy with
       DEBUG accidentally left on still gets strict cookies.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.durations import parse_duration

logger = logging.getLogger("sessionward.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file, as long as DEBUG=true lets the
    validator generate signing secrets.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    environment: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"
    database_url: str = "sqlite:///sessionward.db"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates dev secrets or raises.
    jwt_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_access_expires_in: str = "15m"
    jwt_refresh_expires_in: str = "30d"
    jwt_issuer: str = "sessionward"
    jwt_audience: str = "sessionward-api"

    # When a rotated refresh token is presented again, revoke every session
    # of its owner before rejecting it.
    refresh_reuse_revokes_all: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    frontend_url: str = ""
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "testserver", "*.localhost"]

    login_rate_limit: str = "5/minute"
    refresh_rate_limit: str = "10/minute"
    register_rate_limit: str = "3/minute"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def access_token_lifetime(self) -> timedelta:
        return parse_duration(self.jwt_access_expires_in)

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return parse_duration(self.jwt_refresh_expires_in)

    @property
    def cors_origins(self) -> list[str]:
        origins = ["http://localhost:3000"]
        if self.frontend_url:
            origins.insert(0, self.frontend_url)
        return origins

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the signing-secret policy [S1] [S2].

        Dev mode (DEBUG=true): auto-generate missing secrets with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if either
            secret is missing.

        Both modes: reject short secrets, identical secrets and unparsable
            token lifetimes.
        """
        for field in ("jwt_secret", "jwt_refresh_secret"):
            if getattr(self, field):
                continue
            if self.debug:
                setattr(self, field, secrets.token_hex(32))
                logger.warning(
                    "Using auto-generated %s. Sessions will not persist across restarts.", field.upper()
                )
            else:
                raise ValueError(
                    f"{field.upper()} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < _MIN_SECRET_LENGTH or len(self.jwt_refresh_secret) < _MIN_SECRET_LENGTH:
            raise ValueError(f"JWT secrets must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be different.")
        # Fail at startup, not on the first login.
        parse_duration(self.jwt_access_expires_in)
        parse_duration(self.jwt_refresh_expires_in)
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or build a Settings(...)
    directly and pass it to the components that take one.
    """
    return Settings()

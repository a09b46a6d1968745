"""
auth/cookies.py -- CookieTransport: tokens in and out of HTTP cookies.

Cookie policy:
  httponly: always. JS cannot read either token (XSS mitigation).
  secure: only in production (ENVIRONMENT=production).
  samesite: "strict" in production, "lax" otherwise.
  path: "/".
  max_age: the token lifetime from TokenCodec, so cookie and JWT expire
      together.

clear() repeats httponly/secure/samesite/path exactly. Browsers treat a
Set-Cookie with different attributes as a different cookie, so a mismatched
delete silently leaves the real cookie in place.

extract():
  access  -- "accessToken" cookie, falling back to Authorization: Bearer.
  refresh -- "refreshToken" cookie only. A refresh token is never accepted
             from a header: headers are script-settable, the http-only cookie
             is not.

Layer rule: no imports from api/. Works with any object exposing `cookies`
and `headers` mappings (Starlette Request or auth.strategies.RequestContext).
"""

from __future__ import annotations

from typing import Literal

from auth.tokens import TokenCodec
from core.config import Settings

TokenType = Literal["access", "refresh"]

COOKIE_NAMES: dict[str, str] = {
    "access": "accessToken",
    "refresh": "refreshToken",
}


class CookieTransport:
    def __init__(self, settings: Settings, codec: TokenCodec) -> None:
        self._production = settings.is_production
        self._max_age: dict[str, int] = {
            "access": codec.access_max_age,
            "refresh": codec.refresh_max_age,
        }

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def cookie_attributes(self) -> dict:
        """Attributes shared by set and clear."""
        return {
            "httponly": True,
            "secure": self._production,
            "samesite": "strict" if self._production else "lax",
            "path": "/",
        }

    def max_age(self, token_type: TokenType) -> int:
        return self._max_age[token_type]

    def emit(self, response, token_type: TokenType, token: str) -> None:
        """Set the cookie for token_type on a Starlette/FastAPI response."""
        response.set_cookie(
            COOKIE_NAMES[token_type],
            value=token,
            max_age=self.max_age(token_type),
            **self.cookie_attributes(),
        )

    def emit_pair(self, response, access_token: str, refresh_token: str) -> None:
        self.emit(response, "refresh", refresh_token)
        self.emit(response, "access", access_token)

    def clear(self, response, token_type: TokenType) -> None:
        response.delete_cookie(COOKIE_NAMES[token_type], **self.cookie_attributes())

    def clear_all(self, response) -> None:
        self.clear(response, "access")
        self.clear(response, "refresh")

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def extract(self, request, token_type: TokenType) -> str | None:
        token = request.cookies.get(COOKIE_NAMES[token_type])
        if token:
            return token
        if token_type != "access":
            return None
        auth_header = request.headers.get("authorization", "")
        scheme, _, value = auth_header.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
        return None

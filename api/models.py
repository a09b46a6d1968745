"""
API request and response models for SessionWard REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import PublicUser

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain. Delivery is
# the real test of an address; this only rejects obvious garbage.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

_PASSWORD_CLASSES = (
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one number"),
)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class UserCreate(BaseModel):
    """Request body for POST /users.

    Password policy: at least 8 characters with at least one lowercase letter,
    one uppercase letter and one number.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    password: str = Field(min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        missing = [label for pattern, label in _PASSWORD_CLASSES if not pattern.search(value)]
        if missing:
            raise ValueError("Password must contain at least " + ", ".join(missing) + ".")
        return value


class UserUpdate(BaseModel):
    """Request body for PATCH /users/me."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. There is no password field to leak."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenResponse(BaseModel):
    """Response for POST /auth/login and POST /auth/refresh.

    The refresh token is never in the body -- only in the http-only cookie.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class RevokeAllResponse(BaseModel):
    """Response for POST /auth/logout-all."""

    model_config = ConfigDict(frozen=True)

    message: str
    revoked: int


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]

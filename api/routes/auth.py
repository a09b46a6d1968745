"""
api/routes/auth.py -- Session endpoints.

Routes:
  POST /auth/login       -- email/password login; sets both cookies
  POST /auth/refresh     -- rotate the refresh cookie; re-sets both cookies
  POST /auth/logout      -- revoke the refresh cookie's token; clears cookies
  POST /auth/logout-all  -- revoke every refresh token of the caller

Security:
  [H2] /auth/login and /auth/refresh are rate-limited per IP.
  [C1] Login goes through SessionCoordinator.login -> CredentialValidator,
       which equalizes timing. Never inline a user lookup here.
  [M5] Cache-Control: no-store on every response that carries a token.
  Every refresh failure is the same 401 body, and that response clears both
  cookies so the browser stops presenting a dead token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit, refresh_limit
from api.models import (
    ErrorDetail,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RevokeAllResponse,
    TokenResponse,
    UserResponse,
)
from auth.cookies import CookieTransport
from auth.dependencies import get_coordinator, get_current_user
from auth.errors import InvalidCredentials, Unauthorized
from auth.models import PublicUser, TokenPair
from auth.sessions import SessionCoordinator
from auth.strategies import RequestContext

logger = logging.getLogger("sessionward.api.auth")

# Auth policy:
# - POST /auth/login:       public
# - POST /auth/refresh:     refresh cookie (RefreshCookieStrategy)
# - POST /auth/logout:      access token (get_current_user)
# - POST /auth/logout-all:  access token (get_current_user)
router = APIRouter()


def _token_response(pair: TokenPair, transport: CookieTransport) -> JSONResponse:
    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            access_token=pair.access_token,
            user=UserResponse.from_public(pair.user),
        ).model_dump(),
    )
    transport.emit_pair(resp, pair.access_token, pair.refresh_token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(login_limit)  # [H2]
@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set access and refresh cookies.

    Unknown email and wrong password produce the same 401 body.
    """
    coordinator: SessionCoordinator = request.app.state.coordinator
    try:
        pair = coordinator.login(body.email, body.password)
    except InvalidCredentials:
        return _error_response(401, "invalid_credentials", "Invalid email or password.")
    return _token_response(pair, request.app.state.transport)


@limiter.limit(refresh_limit)  # [H2]
@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request) -> JSONResponse:
    """Exchange the refresh cookie for a new token pair.

    The refresh token is read from the http-only cookie only. The presented
    token is retired in the same transaction that stores its successor.
    """
    transport: CookieTransport = request.app.state.transport
    try:
        principal = request.app.state.refresh_strategy.authenticate(RequestContext.from_request(request))
        pair = request.app.state.coordinator.refresh(principal.token)
    except Unauthorized as exc:
        resp = _error_response(401, "unauthorized", str(exc))
        resp.headers["WWW-Authenticate"] = "Bearer"
        transport.clear_all(resp)
        return resp
    return _token_response(pair, transport)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(
    request: Request,
    current_user: PublicUser = Depends(get_current_user),
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """Revoke the refresh token in the cookie (if any) and clear both cookies.

    Always 200 once the access token is valid, whether or not a refresh
    cookie was sent or still matched an active record.
    """
    transport: CookieTransport = request.app.state.transport
    result = coordinator.logout(transport.extract(request, "refresh"))
    resp = JSONResponse(content=MessageResponse(**result).model_dump())
    transport.clear_all(resp)
    return resp


@router.post("/auth/logout-all", response_model=RevokeAllResponse)
def logout_all(
    request: Request,
    current_user: PublicUser = Depends(get_current_user),
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> JSONResponse:
    """Revoke every refresh token of the caller ("log out everywhere").

    Access tokens already issued stay valid until they expire; they are
    short-lived by design of the two-token scheme.
    """
    transport: CookieTransport = request.app.state.transport
    count = coordinator.revoke_all(current_user.id)
    resp = JSONResponse(
        content=RevokeAllResponse(message="All sessions revoked", revoked=count).model_dump(),
    )
    transport.clear_all(resp)
    return resp

"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_current_principal / get_current_user select AccessTokenStrategy
explicitly. The refresh route calls RefreshCookieStrategy itself because a
failed refresh must also clear both cookies on its 401 response.

The strategies and the session coordinator are built once in the app
lifespan and stored on app.state; these helpers only fetch them and turn
Unauthorized into HTTP 401.

Layer rule: auth/dependencies.py may import from fastapi (for
Depends/HTTPException/Request) because this module is part of the FastAPI
dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.errors import Unauthorized
from auth.models import PublicUser
from auth.sessions import SessionCoordinator
from auth.strategies import AuthenticationStrategy, Principal, RequestContext


def _authenticate(request: Request, strategy: AuthenticationStrategy) -> Principal:
    try:
        return strategy.authenticate(RequestContext.from_request(request))
    except Unauthorized as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


def get_current_principal(request: Request) -> Principal:
    """Require a valid access token (cookie or Bearer header)."""
    return _authenticate(request, request.app.state.access_strategy)


def get_current_user(principal: Principal = Depends(get_current_principal)) -> PublicUser:
    """Require authentication and return the public view of the caller.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: PublicUser = Depends(get_current_user)): ...
    """
    return principal.user


def get_coordinator(request: Request) -> SessionCoordinator:
    return request.app.state.coordinator

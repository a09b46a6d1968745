"""
api/routes/users.py -- Registration and self-service profile endpoints.

Routes:
  POST   /users      -- register (public, rate-limited)
  GET    /users/me   -- current profile (requires auth)
  PATCH  /users/me   -- update name (requires auth)
  DELETE /users/me   -- delete account; revokes its refresh tokens (requires auth)

The password hash never appears in a response: handlers only ever see
PublicUser.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.limiter import limiter, register_limit
from api.models import UserCreate, UserResponse, UserUpdate
from auth.dependencies import get_coordinator, get_current_user
from auth.errors import Conflict
from auth.models import PublicUser, User
from auth.passwords import hash_password
from auth.sessions import SessionCoordinator
from auth.store import UserStore

logger = logging.getLogger("sessionward.api.users")

router = APIRouter()


@limiter.limit(register_limit)
@router.post("/users", response_model=UserResponse, status_code=201)
def register(request: Request, body: UserCreate) -> UserResponse:
    """Create an account. 409 if the email is already registered."""
    user_store: UserStore = request.app.state.user_store
    try:
        user_id = user_store.create_user(
            User(email=body.email, name=body.name, hashed_password=hash_password(body.password))
        )
    except Conflict as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": str(exc)},
        ) from exc
    logger.info("Registered user %s", user_id)
    return _load(user_store, user_id)


@router.get("/users/me", response_model=UserResponse)
def me(current_user: PublicUser = Depends(get_current_user)) -> UserResponse:
    """Return the profile of the currently authenticated user."""
    return UserResponse.from_public(current_user)


@router.patch("/users/me", response_model=UserResponse)
def update_me(
    request: Request,
    body: UserUpdate,
    current_user: PublicUser = Depends(get_current_user),
) -> UserResponse:
    user_store: UserStore = request.app.state.user_store
    if body.name is not None:
        user_store.update_user(current_user.id, name=body.name)
    return _load(user_store, current_user.id)


@router.delete("/users/me", status_code=204)
def delete_me(
    request: Request,
    current_user: PublicUser = Depends(get_current_user),
    coordinator: SessionCoordinator = Depends(get_coordinator),
) -> Response:
    """Delete the caller's account, revoke its sessions, clear cookies."""
    user_store: UserStore = request.app.state.user_store
    coordinator.revoke_all(current_user.id)
    user_store.delete_user(current_user.id)
    logger.info("Deleted user %s", current_user.id)
    resp = Response(status_code=204)
    request.app.state.transport.clear_all(resp)
    return resp


def _load(user_store: UserStore, user_id: str) -> UserResponse:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return UserResponse.from_public(user.to_public())

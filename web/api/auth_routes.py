"""Auth API routes: login, current user, token refresh."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

import config
from drop.models import User
from drop.models.base import async_session_factory
from drop.services.roles import Role
from web.auth import (
    SessionUser,
    authenticate,
    get_current_user,
    get_user_by_username,
    hash_password,
    issue_token,
    login_limiter,
    normalize_username,
    require_user,
)

logger = logging.getLogger("shortdrop.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid username or password"


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    id: int
    username: str
    role: str


class UserResponse(BaseModel):
    id: int
    username: str
    role: str


async def _bootstrap_admin(username: str, password: str) -> Optional[User]:
    """Create the initial admin if INITIAL_ADMIN_PASSWORD is set and matches."""
    if not (
        config.INITIAL_ADMIN_PASSWORD
        and username == config.INITIAL_ADMIN_USERNAME
        and password == config.INITIAL_ADMIN_PASSWORD
    ):
        return None
    if await get_user_by_username(username):
        return None
    async with async_session_factory() as session:
        user = User(
            username=config.INITIAL_ADMIN_USERNAME,
            password_hash=hash_password(config.INITIAL_ADMIN_PASSWORD),
            role=Role.ADMIN.value,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
    logger.info("Bootstrapped initial admin %r", user.username)
    return user


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    """Authenticate and return JWT. The first-run admin bootstrap is subject to the same lockout."""
    username = normalize_username(body.username)
    user = None
    if not login_limiter.is_locked(username):
        user = await _bootstrap_admin(username, body.password)
        if user:
            login_limiter.clear_failures(username)
    if not user:
        user = await authenticate(username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    logger.info("User %r logged in", user.username)
    return LoginResponse(access_token=issue_token(user), id=user.id, username=user.username, role=user.role)


@router.post("/refresh", response_model=LoginResponse)
async def refresh_token(user: SessionUser = Depends(require_user)):
    """Return the current (revalidated) session token."""
    return LoginResponse(access_token=user.token, id=user.id, username=user.username, role=user.role.value)


@router.get("/me", response_model=UserResponse)
async def get_me(user: SessionUser = Depends(require_user)):
    """Get current authenticated user."""
    return UserResponse(id=user.id, username=user.username, role=user.role.value)


@router.get("/me/optional")
async def get_me_optional(user: Optional[SessionUser] = Depends(get_current_user)):
    """Get current user if logged in, else null. For frontend auth check."""
    if not user:
        return None
    return {"id": user.id, "username": user.username, "role": user.role.value}

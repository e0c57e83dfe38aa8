"""Authentication for web API: JWT sessions, password hashing, login rate limiting, role checks."""
from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import select

import config
from drop.models import User
from drop.models.base import async_session_factory
from drop.services.rate_limiter import LoginRateLimiter
from drop.services.roles import Role, can_upload, is_admin
from drop.services.sessions import SessionClaims, SessionRevalidator, UserIdentity

logger = logging.getLogger("shortdrop.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)

REFRESHED_TOKEN_HEADER = "X-Auth-Token"


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(_prepare_password(plain), hashed)


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


async def get_user_by_username(username: str) -> Optional[User]:
    async with async_session_factory() as session:
        result = await session.execute(select(User).where(User.username == normalize_username(username)))
        return result.scalar_one_or_none()


async def fetch_user_identity(user_id: int) -> Optional[UserIdentity]:
    """Current id and role for a user, or None if the user was deleted."""
    async with async_session_factory() as session:
        result = await session.execute(select(User.id, User.role).where(User.id == user_id))
        row = result.first()
        if not row:
            return None
        return UserIdentity(id=row.id, role=row.role)


login_limiter = LoginRateLimiter()
session_revalidator = SessionRevalidator(fetch_user_identity)


async def authenticate(
    username: str, password: str, limiter: LoginRateLimiter = login_limiter
) -> Optional[User]:
    """Verify credentials. Returns None for unknown users, wrong passwords and locked-out usernames alike.

    A locked username is rejected before the password is hashed, so the lockout is
    observable through response timing.
    """
    username = normalize_username(username)
    if not username or not password:
        return None
    if limiter.is_locked(username):
        logger.info("Rejected login for locked username %r", username)
        return None
    user = await get_user_by_username(username)
    if not user or not verify_password(password, user.password_hash):
        limiter.record_failure(username)
        return None
    limiter.clear_failures(username)
    return user


def create_access_token(user_id: int, username: str, claims: SessionClaims) -> str:
    expire = datetime.now(timezone.utc) + timedelta(days=config.JWT_EXPIRE_DAYS)
    payload = {
        "sub": str(user_id),
        "name": username,
        "role": claims.role,
        "rv": claims.revalidated_at,
        "exp": expire,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def issue_token(user: User) -> str:
    """Sign a fresh session token for a user who just proved their credentials."""
    claims = session_revalidator.sign_in(UserIdentity(id=user.id, role=user.role))
    return create_access_token(user.id, user.username, claims)


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def claims_from_payload(payload: dict) -> SessionClaims:
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return SessionClaims()
    rv = payload.get("rv")
    return SessionClaims(
        user_id=user_id,
        role=payload.get("role"),
        revalidated_at=float(rv) if isinstance(rv, (int, float)) else None,
    )


@dataclass(frozen=True)
class SessionUser:
    """The authenticated caller, as known from (revalidated) session claims."""

    id: int
    username: str
    role: Role
    token: str


async def get_current_user(
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_auth_token: Optional[str] = Header(None, alias="X-Auth-Token"),
) -> Optional[SessionUser]:
    """Return current user from JWT, or None if not authenticated. Accepts Authorization: Bearer or X-Auth-Token (fallback for proxies that strip Authorization).

    Stale claims are revalidated against the database; the re-signed token is sent back in X-Auth-Token.
    """
    token = None
    if credentials and credentials.credentials:
        token = credentials.credentials
    elif x_auth_token:
        token = x_auth_token
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    claims = claims_from_payload(payload)
    refreshed = await session_revalidator.refresh(claims)
    if not refreshed.authenticated:
        return None
    try:
        role = Role.parse(refreshed.role)
    except ValueError:
        logger.warning("Session for user %s carries unknown role %r", refreshed.user_id, refreshed.role)
        return None
    username = payload.get("name") or ""
    if refreshed is not claims:
        token = create_access_token(refreshed.user_id, username, refreshed)
        response.headers[REFRESHED_TOKEN_HEADER] = token
    return SessionUser(id=refreshed.user_id, username=username, role=role, token=token)


async def require_user(
    user: Optional[SessionUser] = Depends(get_current_user),
) -> SessionUser:
    """Require authenticated user. Raises 401 if not logged in."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_uploader(user: SessionUser) -> SessionUser:
    """Require uploader or admin role. Raises 403 if insufficient."""
    if not can_upload(user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: insufficient permissions")
    return user


def require_admin(user: SessionUser) -> SessionUser:
    """Require admin role. Raises 403 if insufficient."""
    if not is_admin(user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


async def require_uploader_user(
    user: SessionUser = Depends(require_user),
) -> SessionUser:
    """Dependency: require logged-in uploader or admin."""
    return require_uploader(user)


async def require_admin_user(
    user: SessionUser = Depends(require_user),
) -> SessionUser:
    """Dependency: require logged-in admin."""
    return require_admin(user)

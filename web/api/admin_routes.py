"""Admin API routes: user management, invite links, content management."""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import config
from drop.models import AllowedDirectory, Content, InviteToken, ShortSlug, User
from drop.models.base import async_session_factory
from drop.services.roles import Role
from drop.services.validation import validate_short_slug
from web.api.utils import content_payload, iso_utc, load_content, storage
from web.auth import SessionUser, hash_password, normalize_username, require_admin_user

logger = logging.getLogger("shortdrop.admin")

router = APIRouter(prefix="/api/admin", tags=["admin"])


# --- Pydantic schemas ---


class CreateUserRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None  # guest (default), uploader, admin
    invite: bool = False  # Provision with an invite link instead of a password


class UpdateUserRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UpdateContentRequest(BaseModel):
    expires_at: Optional[datetime] = None  # Explicit null removes the expiry
    add_slugs: list[str] = []
    remove_slugs: list[str] = []
    directory: Optional[str] = None  # Explicit null moves to the upload root


# --- Helpers ---


def _check_username(username: str) -> str:
    username = normalize_username(username)
    if not config.USERNAME_MIN_LENGTH <= len(username) <= config.USERNAME_MAX_LENGTH:
        raise HTTPException(
            400, f"Username must be {config.USERNAME_MIN_LENGTH}-{config.USERNAME_MAX_LENGTH} characters"
        )
    return username


def _check_password(password: str) -> None:
    if len(password) < config.PASSWORD_MIN_LENGTH:
        raise HTTPException(400, f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters")


def _check_role(role: str) -> Role:
    try:
        return Role.parse(role)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _user_payload(user: User, content_count: Optional[int] = None) -> dict:
    data = {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "created_at": iso_utc(user.created_at),
        "updated_at": iso_utc(user.updated_at),
    }
    if content_count is not None:
        data["content_count"] = content_count
    return data


async def _create_invite(session: AsyncSession, user: User) -> InviteToken:
    """Add an unused invite token for the user. Caller commits."""
    invite = InviteToken(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=datetime.utcnow() + timedelta(hours=config.INVITE_EXPIRE_HOURS),
    )
    session.add(invite)
    return invite


def _invite_payload(invite: InviteToken) -> dict:
    return {
        "token": invite.token,
        "url": f"{config.BASE_URL}/invite/{invite.token}",
        "expires_at": iso_utc(invite.expires_at),
    }


# --- Users ---


@router.get("/users")
async def list_users(admin: SessionUser = Depends(require_admin_user)):
    """List all users with their content counts (admin only)."""
    async with async_session_factory() as session:
        counts = (
            select(Content.uploaded_by_id, func.count(Content.id).label("n"))
            .group_by(Content.uploaded_by_id)
            .subquery()
        )
        result = await session.execute(
            select(User, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.uploaded_by_id == User.id)
            .order_by(User.created_at.desc(), User.id.desc())
        )
        return {"users": [_user_payload(u, n) for u, n in result.all()]}


@router.post("/users", status_code=201)
async def create_user(body: CreateUserRequest, admin: SessionUser = Depends(require_admin_user)):
    """Create a new user (admin only). With invite=true and no password, returns an invite link."""
    if not body.username or (not body.password and not body.invite):
        raise HTTPException(400, "Username and password are required")
    username = _check_username(body.username)
    if body.password:
        _check_password(body.password)
    role = _check_role(body.role) if body.role else Role.GUEST
    async with async_session_factory() as session:
        existing = await session.execute(select(User.id).where(User.username == username))
        if existing.scalar_one_or_none() is not None:
            raise HTTPException(409, "Username already taken")
        user = User(
            username=username,
            # Invited users get an unknown random password until they redeem the link
            password_hash=hash_password(body.password or secrets.token_urlsafe(32)),
            role=role.value,
        )
        session.add(user)
        try:
            await session.flush()
        except IntegrityError:
            raise HTTPException(409, "Username already taken")
        invite = await _create_invite(session, user) if body.invite else None
        await session.commit()
        await session.refresh(user)
        response = {"user": _user_payload(user)}
        if invite:
            response["invite"] = _invite_payload(invite)
    logger.info("Admin %s created user %r (%s)", admin.id, username, role.value)
    return response


@router.get("/users/{user_id}")
async def get_user(user_id: int, admin: SessionUser = Depends(require_admin_user)):
    """Get one user (admin only)."""
    async with async_session_factory() as session:
        user = await session.get(User, user_id)
        if not user:
            raise HTTPException(404, "User not found")
        count = await session.execute(select(func.count(Content.id)).where(Content.uploaded_by_id == user_id))
        return {"user": _user_payload(user, count.scalar_one())}


@router.put("/users/{user_id}")
async def update_user(user_id: int, body: UpdateUserRequest, admin: SessionUser = Depends(require_admin_user)):
    """Update username, password or role (admin only). Role changes reach live sessions on their next revalidation."""
    async with async_session_factory() as session:
        user = await session.get(User, user_id)
        if not user:
            raise HTTPException(404, "User not found")
        if body.username:
            username = _check_username(body.username)
            duplicate = await session.execute(
                select(User.id).where(User.username == username, User.id != user_id)
            )
            if duplicate.scalar_one_or_none() is not None:
                raise HTTPException(409, "Username already taken")
            user.username = username
        if body.password:
            _check_password(body.password)
            user.password_hash = hash_password(body.password)
        if body.role:
            user.role = _check_role(body.role).value
        await session.commit()
        await session.refresh(user)
        logger.info("Admin %s updated user %s", admin.id, user_id)
        return {"user": _user_payload(user)}


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, admin: SessionUser = Depends(require_admin_user)):
    """Delete a user and their content (admin only). Cannot delete self."""
    if user_id == admin.id:
        raise HTTPException(400, "Cannot delete your own account")
    async with async_session_factory() as session:
        result = await session.execute(
            select(User).where(User.id == user_id).options(
                selectinload(User.content).selectinload(Content.short_slugs),
                selectinload(User.invite_tokens),
            )
        )
        user = result.scalar_one_or_none()
        if not user:
            raise HTTPException(404, "User not found")
        paths = [c.storage_path for c in user.content]
        await session.delete(user)
        await session.commit()
    for path in paths:
        storage.delete_file(path)
    logger.info("Admin %s deleted user %s and %d content item(s)", admin.id, user_id, len(paths))
    return {"success": True}


@router.post("/users/{user_id}/invite", status_code=201)
async def create_user_invite(user_id: int, admin: SessionUser = Depends(require_admin_user)):
    """Issue a fresh invite (password set) link for an existing user (admin only)."""
    async with async_session_factory() as session:
        user = await session.get(User, user_id)
        if not user:
            raise HTTPException(404, "User not found")
        invite = await _create_invite(session, user)
        await session.commit()
        logger.info("Admin %s issued invite for user %s", admin.id, user_id)
        return {"user": _user_payload(user), "invite": _invite_payload(invite)}


# --- Content ---


@router.get("/content")
async def list_content(
    expired: Optional[Literal["active", "expired"]] = None,
    admin: SessionUser = Depends(require_admin_user),
):
    """List all content, newest first (admin only). Filter with ?expired=active|expired."""
    now = datetime.utcnow()
    query = select(Content).options(selectinload(Content.short_slugs), selectinload(Content.uploaded_by))
    if expired == "active":
        query = query.where(or_(Content.expires_at.is_(None), Content.expires_at > now))
    elif expired == "expired":
        query = query.where(Content.expires_at <= now)
    async with async_session_factory() as session:
        result = await session.execute(query.order_by(Content.created_at.desc()))
        items = result.scalars().all()
        return {"content": [content_payload(c, include_owner=True) for c in items]}


@router.put("/content/{content_id}")
async def update_content(content_id: str, body: UpdateContentRequest, admin: SessionUser = Depends(require_admin_user)):
    """Change expiry, add/remove slugs, or move to another directory (admin only)."""
    updates = body.model_dump(exclude_unset=True)
    add_slugs = []
    for raw in body.add_slugs:
        checked = validate_short_slug(raw)
        if not checked.valid:
            raise HTTPException(400, checked.error)
        add_slugs.append(checked.slug)
    remove_slugs = [s.strip().lower() for s in body.remove_slugs]

    async with async_session_factory() as session:
        content = await load_content(session, content_id)
        if not content:
            raise HTTPException(404, "Content not found")

        if "expires_at" in updates:
            expires_at = body.expires_at
            if expires_at is not None and expires_at.tzinfo is not None:
                expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
            content.expires_at = expires_at

        if add_slugs:
            taken = await session.execute(select(ShortSlug.slug).where(ShortSlug.slug.in_(add_slugs)))
            taken_slugs = taken.scalars().all()
            if taken_slugs or len(set(add_slugs)) != len(add_slugs):
                raise HTTPException(409, f"Slug already in use: {', '.join(taken_slugs) or add_slugs[0]}")
            for slug in add_slugs:
                content.short_slugs.append(ShortSlug(slug=slug))

        if remove_slugs:
            for slug_row in list(content.short_slugs):
                if slug_row.slug in remove_slugs:
                    content.short_slugs.remove(slug_row)

        undo_move = None
        if "directory" in updates and body.directory != content.directory:
            directory = body.directory or None
            if directory:
                result = await session.execute(select(AllowedDirectory).where(AllowedDirectory.path == directory))
                if not result.scalar_one_or_none():
                    raise HTTPException(400, "Invalid directory")
            try:
                new_path = storage.move_file(content.storage_path, directory)
                undo_move = (new_path, content.directory)
                content.storage_path = new_path
            except FileNotFoundError:
                logger.warning("Content %s has no file on disk; updating directory only", content_id)
            content.directory = directory

        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if undo_move:
                storage.move_file(*undo_move)
            raise HTTPException(409, "Slug already in use")
        content = await load_content(session, content_id)
        logger.info("Admin %s updated content %s", admin.id, content_id)
        return {"content": content_payload(content, include_owner=True)}


@router.delete("/content/{content_id}")
async def delete_content(content_id: str, admin: SessionUser = Depends(require_admin_user)):
    """Delete content, its slugs and its file (admin only)."""
    async with async_session_factory() as session:
        content = await load_content(session, content_id)
        if not content:
            raise HTTPException(404, "Content not found")
        path = content.storage_path
        await session.delete(content)
        await session.commit()
    storage.delete_file(path)
    logger.info("Admin %s deleted content %s", admin.id, content_id)
    return {"success": True}

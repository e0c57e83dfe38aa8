"""Invite link redemption (public): validate a token, then set a password with it."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import config
from drop.models import InviteToken
from drop.models.base import async_session_factory
from web.auth import hash_password, login_limiter

logger = logging.getLogger("shortdrop.auth")

router = APIRouter(prefix="/api/invite", tags=["invite"])


class RedeemInviteRequest(BaseModel):
    password: Optional[str] = None


async def _usable_invite(session: AsyncSession, token: str) -> InviteToken:
    result = await session.execute(
        select(InviteToken).where(InviteToken.token == token).options(selectinload(InviteToken.user))
    )
    invite = result.scalar_one_or_none()
    if not invite:
        raise HTTPException(404, "Invalid invite link")
    if invite.used_at:
        raise HTTPException(410, "This invite link has already been used")
    if invite.expires_at < datetime.utcnow():
        raise HTTPException(410, "This invite link has expired")
    return invite


@router.get("/{token}")
async def check_invite(token: str):
    """Validate an invite token before showing the set-password form."""
    async with async_session_factory() as session:
        invite = await _usable_invite(session, token)
        return {"valid": True, "username": invite.user.username}


@router.post("/{token}")
async def redeem_invite(token: str, body: RedeemInviteRequest):
    """Set the invited user's password and consume the token in one transaction."""
    if not body.password:
        raise HTTPException(400, "Password is required")
    if len(body.password) < config.PASSWORD_MIN_LENGTH:
        raise HTTPException(400, f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters")
    async with async_session_factory() as session:
        invite = await _usable_invite(session, token)
        invite.user.password_hash = hash_password(body.password)
        invite.used_at = datetime.utcnow()
        await session.commit()
        username = invite.user.username
    login_limiter.clear_failures(username)
    logger.info("Invite redeemed for user %r", username)
    return {"success": True, "username": username}

"""Session claim revalidation.

A session token caches the user's id and role. Every refresh older than the
revalidation interval re-reads the user from the store; a deleted user gets
their claims cleared, which the auth layer treats as "not logged in".
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

import config

logger = logging.getLogger("shortdrop.auth")


@dataclass(frozen=True)
class UserIdentity:
    """What the store returns for a user: id and current role."""

    id: int
    role: str


@dataclass(frozen=True)
class SessionClaims:
    user_id: Optional[int] = None
    role: Optional[str] = None
    revalidated_at: Optional[float] = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None and self.role is not None


CLEARED = SessionClaims()


class SessionRevalidator:
    """Decides when cached claims must be checked against the user store."""

    def __init__(
        self,
        lookup: Callable[[int], Awaitable[Optional[UserIdentity]]],
        interval_seconds: float = config.SESSION_REVALIDATE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.lookup = lookup
        self.interval_seconds = interval_seconds
        self.clock = clock

    def sign_in(self, user: UserIdentity) -> SessionClaims:
        """Claims for a freshly verified login."""
        return SessionClaims(user_id=user.id, role=user.role, revalidated_at=self.clock())

    async def refresh(self, claims: SessionClaims, signed_in: Optional[UserIdentity] = None) -> SessionClaims:
        """Return up-to-date claims. Unchanged (same object) when still within the interval."""
        if signed_in is not None:
            return self.sign_in(signed_in)
        if claims.user_id is None:
            return CLEARED
        last_check = claims.revalidated_at or 0
        now = self.clock()
        if now - last_check <= self.interval_seconds:
            return claims
        current = await self.lookup(claims.user_id)
        if current is None:
            logger.info("Session for deleted user %s cleared", claims.user_id)
            return CLEARED
        if current.role != claims.role:
            logger.info("Session role for user %s changed: %s -> %s", claims.user_id, claims.role, current.role)
        return replace(claims, role=current.role, revalidated_at=now)

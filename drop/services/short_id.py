"""Short random content identifiers with collision checking."""
from __future__ import annotations

import logging
import secrets
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

import config
from drop.models import Content

logger = logging.getLogger("shortdrop.ids")

# Lowercase + digits (base36). 6 chars = 36^6, about 2.2 billion ids.
ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


class IdAllocationError(RuntimeError):
    """Every candidate id collided with an existing record."""


def random_short_id(length: int = config.CONTENT_ID_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


async def generate_content_id(
    exists: Callable[[str], Awaitable[bool]],
    max_attempts: int = config.CONTENT_ID_MAX_ATTEMPTS,
    length: int = config.CONTENT_ID_LENGTH,
) -> str:
    """Return an id that `exists` reports as unused, retrying up to max_attempts times.

    This is only a pre-filter: the content primary key is the authoritative uniqueness guard.
    """
    for _ in range(max_attempts):
        candidate = random_short_id(length)
        if not await exists(candidate):
            return candidate
    logger.error("Failed to allocate a content id after %d attempts", max_attempts)
    raise IdAllocationError(f"Failed to generate a unique content ID after {max_attempts} attempts")


def content_id_checker(session: AsyncSession) -> Callable[[str], Awaitable[bool]]:
    """Existence check against live content records."""

    async def exists(content_id: str) -> bool:
        result = await session.execute(select(Content.id).where(Content.id == content_id))
        return result.scalar_one_or_none() is not None

    return exists

"""Shared API utilities."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

import config
from drop.models import Content
from drop.services.storage import UploadStorage

storage = UploadStorage(config.UPLOAD_DIR)


def content_url(content_id: str) -> str:
    """Share link for the content view page."""
    return f"{config.BASE_URL}/c/{content_id}"


def raw_url(content_id: str) -> str:
    return f"{config.CONTENT_URL}/r/{content_id}"


def slug_url(slug: str) -> str:
    return f"{config.BASE_URL}/s/{slug}"


def iso_utc(value: datetime | None) -> str | None:
    """Serialize a stored (naive UTC) timestamp with an explicit +00:00 offset."""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()


def content_payload(content: Content, include_owner: bool = False) -> dict:
    """Public view of a content record. Never exposes storage_path."""
    data = {
        "id": content.id,
        "filename": content.filename,
        "original_filename": content.original_filename,
        "directory": content.directory,
        "file_size": content.file_size,
        "file_extension": content.file_extension,
        "mime_type": content.mime_type,
        "expires_at": iso_utc(content.expires_at),
        "created_at": iso_utc(content.created_at),
        "expired": content.is_expired(),
        "url": content_url(content.id),
        "raw_url": raw_url(content.id),
        "short_slugs": [s.slug for s in content.short_slugs],
    }
    if include_owner and content.uploaded_by is not None:
        owner = content.uploaded_by
        data["uploaded_by"] = {"id": owner.id, "username": owner.username, "role": owner.role}
    return data


async def load_content(session: AsyncSession, content_id: str) -> Content | None:
    """Fetch a content record with its slugs and uploader loaded."""
    result = await session.execute(
        select(Content)
        .where(Content.id == content_id)
        .options(selectinload(Content.short_slugs), selectinload(Content.uploaded_by))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()

"""Upload API: uploader uploads and admin uploads (with custom slug and directory)."""
from __future__ import annotations

import logging
import mimetypes
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from drop.models import AllowedDirectory, Content, ShortSlug
from drop.models.base import async_session_factory
from drop.services.roles import is_admin
from drop.services.short_id import IdAllocationError, content_id_checker, generate_content_id
from drop.services.storage import PathTraversalError
from drop.services.validation import (
    sanitize_filename,
    validate_expiry,
    validate_extension,
    validate_file_size,
    validate_short_slug,
)
from web.api.utils import content_payload, load_content, storage
from web.auth import SessionUser, require_admin_user, require_uploader_user

logger = logging.getLogger("shortdrop.upload")

router = APIRouter(prefix="/api", tags=["upload"])


async def _active_storage_used(session: AsyncSession, user_id: int) -> int:
    """Bytes used by a user's content that has not expired yet."""
    now = datetime.utcnow()
    result = await session.execute(
        select(func.coalesce(func.sum(Content.file_size), 0)).where(
            Content.uploaded_by_id == user_id,
            or_(Content.expires_at.is_(None), Content.expires_at > now),
        )
    )
    return int(result.scalar_one())


async def _store_upload(
    user: SessionUser,
    file: Optional[UploadFile],
    expiry: Optional[str],
    short_slug: Optional[str] = None,
    directory: Optional[str] = None,
) -> dict:
    if file is None or not file.filename:
        raise HTTPException(400, "No file provided")

    ext = validate_extension(file.filename)
    if not ext.valid:
        raise HTTPException(400, ext.error)

    # Never buffer more than one byte past the limit
    if file.size is not None and file.size > config.MAX_FILE_SIZE_BYTES:
        raise HTTPException(400, validate_file_size(file.size, config.MAX_FILE_SIZE_BYTES).error)
    data = await file.read(config.MAX_FILE_SIZE_BYTES + 1)
    size = validate_file_size(len(data), config.MAX_FILE_SIZE_BYTES)
    if not size.valid:
        raise HTTPException(400, size.error)

    expires = validate_expiry(user.role, expiry if expiry is not None else config.DEFAULT_EXPIRY_HOURS)
    if not expires.valid:
        raise HTTPException(400, expires.error)

    slug = None
    if short_slug and short_slug.strip():
        checked = validate_short_slug(short_slug)
        if not checked.valid:
            raise HTTPException(400, checked.error)
        slug = checked.slug

    async with async_session_factory() as session:
        if slug:
            taken = await session.execute(select(ShortSlug.id).where(ShortSlug.slug == slug))
            if taken.scalar_one_or_none() is not None:
                raise HTTPException(409, f"Slug '{slug}' is already in use")

        if directory:
            result = await session.execute(select(AllowedDirectory).where(AllowedDirectory.path == directory))
            if not result.scalar_one_or_none():
                raise HTTPException(400, "Invalid directory")

        if not is_admin(user.role):
            used = await _active_storage_used(session, user.id)
            if used + len(data) > config.USER_STORAGE_LIMIT_BYTES:
                raise HTTPException(400, "Storage limit exceeded")

        try:
            content_id = await generate_content_id(content_id_checker(session))
        except IdAllocationError:
            raise HTTPException(500, "Could not allocate a content identifier")

        filename = sanitize_filename(file.filename)
        try:
            storage_path = storage.save_file(data, f"{content_id}{ext.extension}", directory)
        except PathTraversalError:
            raise HTTPException(400, "Invalid directory")
        except OSError:
            logger.exception("Failed to write upload %s", content_id)
            raise HTTPException(500, "Failed to store file")

        content = Content(
            id=content_id,
            filename=filename,
            original_filename=file.filename[:255],
            storage_path=storage_path,
            directory=directory,
            file_size=len(data),
            file_extension=ext.extension,
            mime_type=mimetypes.guess_type(filename)[0] or file.content_type or "application/octet-stream",
            expires_at=expires.expires_at,
            uploaded_by_id=user.id,
        )
        session.add(content)
        if slug:
            session.add(ShortSlug(slug=slug, content_id=content_id))
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            storage.delete_file(storage_path)
            logger.warning("Upload %s conflicted with an existing id or slug", content_id)
            raise HTTPException(409, "Content id or slug already in use")

        content = await load_content(session, content_id)

    logger.info("User %s uploaded %s (%d bytes) as %s", user.id, filename, len(data), content_id)
    return {"success": True, "content": content_payload(content)}


@router.post("/upload")
async def upload(
    file: Optional[UploadFile] = File(None),
    expiry: Optional[str] = Form(None),
    user: SessionUser = Depends(require_uploader_user),
):
    """Upload a file (uploader or admin). Expiry is in hours; only admins may use "off"."""
    return await _store_upload(user, file, expiry)


@router.post("/admin/upload")
async def admin_upload(
    file: Optional[UploadFile] = File(None),
    expiry: Optional[str] = Form(None),
    short_slug: Optional[str] = Form(None),
    directory: Optional[str] = Form(None),
    admin: SessionUser = Depends(require_admin_user),
):
    """Upload a file with an optional custom slug and target directory (admin only)."""
    return await _store_upload(admin, file, expiry, short_slug=short_slug, directory=directory or None)

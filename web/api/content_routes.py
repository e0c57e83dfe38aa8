"""Content retrieval: metadata by id or slug, raw inline view, download.

The short id doubles as the access token for raw and download URLs, so those
routes do not require a session.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy import select

from drop.models import Content, ShortSlug
from drop.models.base import async_session_factory
from drop.services.storage import PathTraversalError
from web.api.utils import content_payload, load_content, storage
from web.auth import SessionUser, require_user

logger = logging.getLogger("shortdrop.content")

router = APIRouter(tags=["content"])

# Inline content must never be sniffed into something executable.
_SAFE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "default-src 'none'; img-src 'self'; media-src 'self'; style-src 'unsafe-inline'; sandbox",
}


async def _live_content(content_id: str) -> Content:
    async with async_session_factory() as session:
        content = await load_content(session, content_id)
    if not content:
        raise HTTPException(404, "Content not found")
    if content.is_expired():
        raise HTTPException(410, "Content has expired")
    return content


def _file_response(content: Content, disposition: str) -> FileResponse:
    try:
        path = storage.get_file_path(content.storage_path)
    except PathTraversalError:
        raise HTTPException(404, "Content not found")
    if not path.is_file():
        logger.warning("Content %s is missing its file %s", content.id, content.storage_path)
        raise HTTPException(404, "Content not found")
    return FileResponse(
        str(path),
        media_type=content.mime_type,
        filename=content.filename,
        content_disposition_type=disposition,
        headers=_SAFE_HEADERS,
    )


@router.get("/api/c/{content_id}")
async def view_content(content_id: str, user: SessionUser = Depends(require_user)):
    """Content metadata for the view page (login required)."""
    content = await _live_content(content_id)
    return content_payload(content, include_owner=True)


@router.get("/api/s/{slug}")
async def view_slug(slug: str, user: SessionUser = Depends(require_user)):
    """Resolve a short slug to its content (login required)."""
    async with async_session_factory() as session:
        result = await session.execute(select(ShortSlug.content_id).where(ShortSlug.slug == slug.lower()))
        content_id = result.scalar_one_or_none()
    if content_id is None:
        raise HTTPException(404, "Short URL not found")
    content = await _live_content(content_id)
    return content_payload(content, include_owner=True)


@router.get("/r/{content_id}")
async def raw_content(content_id: str):
    """Serve the stored file inline."""
    content = await _live_content(content_id)
    return _file_response(content, "inline")


@router.get("/api/content/{content_id}")
async def download_content(content_id: str):
    """Serve the stored file as an attachment."""
    content = await _live_content(content_id)
    return _file_response(content, "attachment")

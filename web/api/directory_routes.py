"""Allowed storage directories (admin only)."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from drop.models import AllowedDirectory
from drop.models.base import async_session_factory
from drop.services.storage import PathTraversalError
from drop.services.validation import validate_short_slug
from web.api.utils import storage
from web.auth import SessionUser, require_admin_user

logger = logging.getLogger("shortdrop.admin")

router = APIRouter(prefix="/api/directories", tags=["directories"])


class DirectoryCreate(BaseModel):
    name: str
    path: str


def _normalize_directory_path(path: str) -> str:
    """Each '/'-separated segment must follow the slug rules (no dots, so no traversal)."""
    segments = path.strip().strip("/").split("/")
    normalized = []
    for segment in segments:
        checked = validate_short_slug(segment)
        if not checked.valid:
            raise HTTPException(400, f"Invalid directory path: {checked.error}")
        normalized.append(checked.slug)
    return "/".join(normalized)


@router.get("")
async def list_directories(admin: SessionUser = Depends(require_admin_user)):
    """List directories content can be placed in (admin only)."""
    async with async_session_factory() as session:
        result = await session.execute(select(AllowedDirectory).order_by(AllowedDirectory.name))
        return {
            "directories": [
                {"id": d.id, "name": d.name, "path": d.path} for d in result.scalars().all()
            ]
        }


@router.post("", status_code=201)
async def create_directory(body: DirectoryCreate, admin: SessionUser = Depends(require_admin_user)):
    """Register a directory and create it under the upload root (admin only)."""
    name = body.name.strip()
    if not name:
        raise HTTPException(400, "Directory name is required")
    path = _normalize_directory_path(body.path)
    try:
        storage.ensure_dir(path)
    except PathTraversalError:
        raise HTTPException(400, "Invalid directory path")
    async with async_session_factory() as session:
        directory = AllowedDirectory(name=name, path=path)
        session.add(directory)
        try:
            await session.commit()
        except IntegrityError:
            raise HTTPException(409, "Directory already exists")
        logger.info("Admin %s added directory %r", admin.id, path)
        return {"directory": {"id": directory.id, "name": directory.name, "path": directory.path}}

"""File storage under the upload directory.

Every path handled here is resolved and checked to stay inside the base
directory before touching the filesystem.
"""
from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

import config

logger = logging.getLogger("shortdrop.storage")


class PathTraversalError(ValueError):
    """A resolved path escaped the upload directory."""


class UploadStorage:
    def __init__(self, base_dir: Path | str = config.UPLOAD_DIR):
        self.base_dir = Path(base_dir)

    @property
    def root(self) -> Path:
        return self.base_dir.resolve()

    def _resolve_inside(self, relative: str | Path) -> Path:
        root = self.root
        target = (root / Path(relative)).resolve()
        if target == root or root in target.parents:
            return target
        logger.warning("Path traversal blocked: %r", str(relative))
        raise PathTraversalError(f"Path traversal detected: {relative!r}")

    def ensure_dir(self, sub_dir: Optional[str] = None) -> Path:
        """Create (if needed) and return the upload directory or a subdirectory of it."""
        directory = self._resolve_inside(sub_dir) if sub_dir else self.root
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def save_file(self, data: bytes, filename: str, sub_dir: Optional[str] = None) -> str:
        """Write data to disk. Returns the storage path relative to the upload directory."""
        directory = self.ensure_dir(sub_dir)
        target = self._resolve_inside(directory.relative_to(self.root) / filename)
        if target.parent != directory:
            raise PathTraversalError(f"Path traversal detected: {filename!r}")
        target.write_bytes(data)
        return target.relative_to(self.root).as_posix()

    def get_file_path(self, storage_path: str) -> Path:
        return self._resolve_inside(storage_path)

    def file_exists(self, storage_path: str) -> bool:
        return self.get_file_path(storage_path).is_file()

    def delete_file(self, storage_path: str) -> None:
        """Remove a stored file. A file that is already gone is not an error."""
        path = self.get_file_path(storage_path)
        try:
            path.unlink()
        except FileNotFoundError:
            pass

    def move_file(self, storage_path: str, sub_dir: Optional[str]) -> str:
        """Move a stored file into another directory (None = upload root). Returns the new storage path."""
        source = self.get_file_path(storage_path)
        directory = self.ensure_dir(sub_dir)
        target = self._resolve_inside(directory.relative_to(self.root) / source.name)
        if target != source:
            shutil.move(os.fspath(source), os.fspath(target))
        return target.relative_to(self.root).as_posix()

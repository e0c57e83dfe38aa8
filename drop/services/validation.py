"""Input validation for uploads: filenames, extensions, sizes, expiry and short slugs.

All helpers are pure and return a result object rather than raising, so callers
can reject a request with the reason before touching any state.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import PurePosixPath
from typing import Optional

import config
from drop.services.roles import can_set_no_expiry

SLUG_MAX_LENGTH = 100
FILENAME_MAX_LENGTH = 200
FALLBACK_FILENAME = "unnamed_file"

_SLUG_CHARS = re.compile(r"^[a-z0-9-]+$")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

ALLOWED_EXTENSIONS = {
    # images
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".ico", ".tif", ".tiff", ".avif",
    # video / audio
    ".mp4", ".webm", ".mov", ".mkv", ".avi", ".mp3", ".wav", ".ogg", ".flac", ".m4a",
    # documents
    ".pdf", ".txt", ".csv", ".md", ".json", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".odt", ".ods", ".odp", ".rtf",
    # archives
    ".zip", ".tar", ".gz", ".7z", ".rar",
}

# Never served, even as an inner extension ("invoice.html.pdf").
BLOCKED_EXTENSIONS = {
    ".html", ".htm", ".xhtml", ".svg", ".js", ".mjs", ".php", ".phtml", ".asp", ".aspx",
    ".jsp", ".cgi", ".pl", ".py", ".rb", ".sh", ".bash", ".bat", ".cmd", ".ps1", ".exe",
    ".dll", ".msi", ".com", ".scr", ".jar", ".vbs", ".hta",
}


@dataclass(frozen=True)
class SlugResult:
    valid: bool
    slug: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class ExtensionResult:
    valid: bool
    extension: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class SizeResult:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ExpiryResult:
    valid: bool
    expires_at: Optional[datetime] = None  # None with valid=True means permanent
    error: Optional[str] = None


def validate_short_slug(value: str) -> SlugResult:
    """Normalize (trim, lowercase) and validate a custom slug.

    Uniqueness is not checked here; the short_slugs unique constraint enforces it.
    """
    slug = (value or "").strip().lower()
    if not slug:
        return SlugResult(False, slug, "Slug cannot be empty")
    if len(slug) > SLUG_MAX_LENGTH:
        return SlugResult(False, slug, f"Slug must be at most {SLUG_MAX_LENGTH} characters")
    if not _SLUG_CHARS.match(slug):
        return SlugResult(False, slug, "Slug may only contain lowercase letters, numbers, and hyphens")
    if slug.startswith("-") or slug.endswith("-") or "--" in slug:
        return SlugResult(False, slug, "Slug cannot start or end with a hyphen or contain consecutive hyphens")
    return SlugResult(True, slug)


def sanitize_filename(filename: str) -> str:
    """Reduce a client-supplied filename to a safe basename."""
    name = (filename or "").replace("\\", "/")
    name = PurePosixPath(name).name
    name = _UNSAFE_FILENAME_CHARS.sub("_", name)
    name = name.lstrip(".")
    if not name:
        return FALLBACK_FILENAME
    if len(name) > FILENAME_MAX_LENGTH:
        stem, dot, ext = name.rpartition(".")
        if dot and stem and len(ext) < 20:
            name = stem[: FILENAME_MAX_LENGTH - len(ext) - 1] + "." + ext
        else:
            name = name[:FILENAME_MAX_LENGTH]
    return name


def validate_extension(filename: str) -> ExtensionResult:
    """Check the final extension against the allow-list and every inner extension against the block-list."""
    parts = (filename or "").lower().split(".")
    if len(parts) < 2 or not parts[-1]:
        return ExtensionResult(False, error="File must have an extension")
    extension = "." + parts[-1]
    if extension in BLOCKED_EXTENSIONS:
        return ExtensionResult(False, extension, f"File type {extension} is blocked")
    for inner in parts[1:-1]:
        inner_ext = "." + inner
        if inner_ext in BLOCKED_EXTENSIONS:
            return ExtensionResult(False, extension, f"File contains blocked extension {inner_ext}")
    if extension not in ALLOWED_EXTENSIONS:
        return ExtensionResult(False, extension, f"File type {extension} is not allowed")
    return ExtensionResult(True, extension)


def validate_file_size(size: int, max_size: int = config.MAX_FILE_SIZE_BYTES) -> SizeResult:
    if size <= 0:
        return SizeResult(False, "File is empty")
    if size > max_size:
        return SizeResult(False, f"File size exceeds maximum of {max_size // (1024 * 1024)} MB")
    return SizeResult(True)


def validate_expiry(role, value: Optional[str], now: Optional[datetime] = None) -> ExpiryResult:
    """Turn an expiry choice (hours as a string, or "off") into an absolute expiry time."""
    now = now or datetime.utcnow()
    if value is None or str(value).strip().lower() in ("", "off", "never"):
        if can_set_no_expiry(role):
            return ExpiryResult(True, None)
        return ExpiryResult(False, error="Only admins can upload content without an expiry")
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return ExpiryResult(False, error="Invalid expiry value")
    if not math.isfinite(hours) or hours <= 0:
        return ExpiryResult(False, error="Invalid expiry value")
    if hours * 60 < config.MIN_EXPIRY_MINUTES:
        return ExpiryResult(False, error=f"Expiry must be at least {config.MIN_EXPIRY_MINUTES} minutes")
    if not can_set_no_expiry(role) and hours > config.UPLOADER_MAX_EXPIRY_HOURS:
        return ExpiryResult(False, error="Expiry cannot exceed 7 days")
    return ExpiryResult(True, now + timedelta(hours=hours))

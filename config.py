"""Configuration for Shortdrop."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _int_env(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'shortdrop.db'}",
)

# File storage
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(Path(__file__).parent / "uploads")))

# Public URLs used when building share links. CONTENT_URL falls back to BASE_URL.
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000").rstrip("/")
CONTENT_URL = (os.getenv("CONTENT_URL", "") or BASE_URL).rstrip("/")

# Web auth (JWT secret, initial admin bootstrap)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = 7
INITIAL_ADMIN_USERNAME = os.getenv("INITIAL_ADMIN_USERNAME", "admin").lower()
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")  # Set to bootstrap first admin

# Login brute-force protection (per username)
LOGIN_WINDOW_SECONDS = _int_env("LOGIN_WINDOW_SECONDS", 15 * 60)
LOGIN_MAX_ATTEMPTS = _int_env("LOGIN_MAX_ATTEMPTS", 5)
LOGIN_CLEANUP_INTERVAL_SECONDS = _int_env("LOGIN_CLEANUP_INTERVAL_SECONDS", 5 * 60)

# How often a session token's role is re-checked against the database
SESSION_REVALIDATE_SECONDS = _int_env("SESSION_REVALIDATE_SECONDS", 5 * 60)

# Content identifiers
CONTENT_ID_LENGTH = 6
CONTENT_ID_MAX_ATTEMPTS = 5

# Upload limits
MAX_FILE_SIZE_BYTES = _int_env("MAX_FILE_SIZE_BYTES", 100 * 1024 * 1024)
USER_STORAGE_LIMIT_BYTES = _int_env("USER_STORAGE_LIMIT_BYTES", 500 * 1024 * 1024)  # Non-admin, active content only

# Expiry values are hours; "off" means permanent (admins only)
DEFAULT_EXPIRY_HOURS = "1"
MIN_EXPIRY_MINUTES = 5
UPLOADER_MAX_EXPIRY_HOURS = 7 * 24

# Invite links
INVITE_EXPIRE_HOURS = _int_env("INVITE_EXPIRE_HOURS", 48)

# Account constraints
USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8

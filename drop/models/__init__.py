"""Database models."""
from drop.models.base import Base, init_db
from drop.models.user import User
from drop.models.content import Content, ShortSlug
from drop.models.directory import AllowedDirectory
from drop.models.invite_token import InviteToken  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "User",
    "Content",
    "ShortSlug",
    "AllowedDirectory",
    "InviteToken",
    "init_db",
]

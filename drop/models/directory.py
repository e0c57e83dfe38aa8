"""Directories admins may place content in."""
from __future__ import annotations

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from drop.models.base import Base


class AllowedDirectory(Base):
    """Named subdirectory of the upload root."""

    __tablename__ = "allowed_directories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    path: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

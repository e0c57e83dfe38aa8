"""Web user model for site authentication."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from drop.models.base import Base


class User(Base):
    """Web user with role-based access."""

    __tablename__ = "users"
    # Ids are never reused, so a stale session cannot resolve to a newer user
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)  # lowercase
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="guest")  # guest, uploader, admin
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    content = relationship(
        "Content", back_populates="uploaded_by", cascade="all, delete-orphan"
    )
    invite_tokens = relationship(
        "InviteToken", back_populates="user", cascade="all, delete-orphan"
    )

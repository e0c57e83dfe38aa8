"""Role hierarchy and permission predicates."""
from __future__ import annotations

from enum import Enum
from typing import Union


class Role(str, Enum):
    """User roles, ordered by rank. New roles must be given an explicit rank."""

    GUEST = "guest"
    UPLOADER = "uploader"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: Union[str, "Role"]) -> "Role":
        """Return the Role for a string. Raises ValueError for unknown roles."""
        if isinstance(value, Role):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Invalid role. Must be one of: {', '.join(ROLE_NAMES)}") from None


_RANKS = {
    Role.GUEST: 0,
    Role.UPLOADER: 1,
    Role.ADMIN: 2,
}

ROLE_NAMES = [r.value for r in sorted(Role, key=lambda r: _RANKS[r])]


def _try_parse(value) -> Role | None:
    try:
        return Role.parse(value)
    except ValueError:
        return None


def has_min_role(user_role: Union[str, Role, None], min_role: Union[str, Role]) -> bool:
    """True if user_role ranks at least min_role. Unknown roles never pass."""
    user = _try_parse(user_role)
    minimum = _try_parse(min_role)
    if user is None or minimum is None:
        return False
    return user.rank >= minimum.rank


def can_upload(role) -> bool:
    return has_min_role(role, Role.UPLOADER)


def is_admin(role) -> bool:
    """Admins manage other users and all content."""
    return has_min_role(role, Role.ADMIN)


def can_set_no_expiry(role) -> bool:
    """Uploaders must always set an expiry; admins may upload permanent content."""
    return is_admin(role)


def can_browse_content(role) -> bool:
    return is_admin(role)

"""Role-based access control for the comment subsystem.

Roles, as issued by the upstream identity provider:
- SUPER_ADMIN: Full system access
- ADMIN: Site administration
- MODERATOR: Comment moderation and report resolution
- CLIENT: Customer account
- USER: Registered reader

Services never look at roles. They receive an ``Actor`` carrying the
resolved permission set and check ``Permission`` values against it.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class UserRole(str, Enum):
    """Roles carried in the access token."""

    USER = "user"
    CLIENT = "client"
    MODERATOR = "moderator"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Permission(str, Enum):
    """Capabilities checked by the comment services."""

    MODERATE_COMMENTS = "moderate_comments"
    RESOLVE_REPORTS = "resolve_reports"


_STAFF_PERMISSIONS = frozenset({Permission.MODERATE_COMMENTS, Permission.RESOLVE_REPORTS})

ROLE_PERMISSIONS: dict[UserRole, frozenset[Permission]] = {
    UserRole.USER: frozenset(),
    UserRole.CLIENT: frozenset(),
    UserRole.MODERATOR: _STAFF_PERMISSIONS,
    UserRole.ADMIN: _STAFF_PERMISSIONS,
    UserRole.SUPER_ADMIN: _STAFF_PERMISSIONS,
}


def permissions_for_role(role: UserRole | str) -> frozenset[Permission]:
    """Permissions granted by a role; unknown roles get none."""
    if isinstance(role, str):
        try:
            role = UserRole(role.lower())
        except ValueError:
            return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller as seen by the services."""

    id: str
    email: str = ""
    name: str = ""
    role: str = UserRole.USER.value
    avatar: str | None = None
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions

    @property
    def is_moderator(self) -> bool:
        return self.has(Permission.MODERATE_COMMENTS)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Actor":
        """Build an actor from verified token claims.

        Explicit ``permissions`` in the token are added to those of the role.
        """
        role = str(claims.get("role") or UserRole.USER.value)
        explicit: Iterable[str] = claims.get("permissions") or []
        granted = set(permissions_for_role(role))
        for value in explicit:
            try:
                granted.add(Permission(value))
            except ValueError:
                continue
        return cls(
            id=str(claims["sub"]),
            email=claims.get("email") or "",
            name=claims.get("name") or "",
            role=role,
            avatar=claims.get("avatar"),
            permissions=frozenset(granted),
        )

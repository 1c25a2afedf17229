"""
Domain: roles, capabilities and the role -> capability registry.

Rules implemented here:
- Roles and permissions are closed enumerations.
- Every role always resolves to a permission set; a role without an explicit
  entry falls back to its built-in default.
- Replacing one role's entry never affects any other role.
- Unauthenticated, absent or unconfirmed users hold no permissions.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    SELLER = "SELLER"


class Permission(str, Enum):
    VIEW_OWN_SALES = "VIEW_OWN_SALES"
    VIEW_ALL_SALES = "VIEW_ALL_SALES"
    CREATE_SALES = "CREATE_SALES"
    APPROVE_SALES = "APPROVE_SALES"
    ACCESS_ADMIN_PANEL = "ACCESS_ADMIN_PANEL"
    VIEW_DASHBOARD = "VIEW_DASHBOARD"


DEFAULT_PERMISSIONS: Mapping[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.MANAGER: frozenset({Permission.VIEW_ALL_SALES, Permission.APPROVE_SALES}),
    Role.SELLER: frozenset({Permission.VIEW_OWN_SALES, Permission.CREATE_SALES}),
}


class PermissionRegistry:
    """
    Mapping from Role to its set of Permissions.

    Only explicitly configured roles are stored; lookups for any other role
    return the built-in default, so partial configuration never blanks a role.
    """

    def __init__(self, entries: Optional[Mapping[Role, Iterable[Permission]]] = None):
        self._entries: Dict[Role, FrozenSet[Permission]] = {}
        for role, permissions in (entries or {}).items():
            self.set(role, permissions)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Iterable[str]]) -> "PermissionRegistry":
        """
        Build a registry from loosely-typed stored data.

        Raises:
            ValueError: if a role or permission name is not part of the enumerations
        """

        entries: Dict[Role, FrozenSet[Permission]] = {}
        for role_name, permission_names in raw.items():
            try:
                role = Role(str(role_name))
            except ValueError:
                raise ValueError(f"Unknown role in permission map: {role_name!r}") from None
            permissions = set()
            for name in permission_names:
                try:
                    permissions.add(Permission(str(name)))
                except ValueError:
                    raise ValueError(f"Unknown permission for role {role.value}: {name!r}") from None
            entries[role] = frozenset(permissions)
        return cls(entries)

    def get(self, role: Role) -> FrozenSet[Permission]:
        return self._entries.get(role, DEFAULT_PERMISSIONS[role])

    def set(self, role: Role, permissions: Iterable[Permission]) -> None:
        self._entries[Role(role)] = frozenset(Permission(p) for p in permissions)

    def check(self, user: Any, permission: Permission) -> bool:
        """True iff `user` is present, confirmed and its role holds `permission`."""

        if user is None:
            return False
        if not getattr(user, "confirmed", True):
            return False
        return permission in self.get(user.role)

    def to_mapping(self) -> Dict[str, list[str]]:
        """Full effective map (defaults included) in a serializable shape."""

        return {
            role.value: sorted(p.value for p in self.get(role))
            for role in Role
        }


__all__ = ["Role", "Permission", "DEFAULT_PERMISSIONS", "PermissionRegistry"]

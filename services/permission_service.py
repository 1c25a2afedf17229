"""
Permission service.

Holds the session's PermissionRegistry: loaded once from the PermissionStore,
read many times, refreshed only when an administrator updates a role.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from domain.errors import PermissionDenied
from domain.notification import Notification, NotificationSink, Severity, discard
from domain.roles import Permission, PermissionRegistry, Role
from repositories.base import PermissionStore

logger = logging.getLogger(__name__)


class PermissionService:
    def __init__(self, store: PermissionStore, notify: NotificationSink = discard):
        self._store = store
        self._notify = notify
        self.registry = PermissionRegistry()

    async def load(self) -> PermissionRegistry:
        """
        Replace the cached registry with the stored configuration.

        Raises:
            ValueError: stored data names an unknown role or permission
        """

        raw = await self._store.load()
        self.registry = PermissionRegistry.from_mapping(raw)
        logger.info("Role permissions loaded", extra={"configured_roles": sorted(raw)})
        return self.registry

    def check(self, user: Optional[Any], permission: Permission) -> bool:
        return self.registry.check(user, permission)

    def require(self, user: Optional[Any], permission: Permission) -> None:
        if not self.check(user, permission):
            raise PermissionDenied(f"Missing permission: {permission.value}")

    def describe(self, actor: Any) -> Dict[str, List[str]]:
        """Effective permission map for the admin panel."""

        self.require(actor, Permission.ACCESS_ADMIN_PANEL)
        return self.registry.to_mapping()

    async def update_role(self, actor: Any, role: Role, permissions: Iterable[Permission]) -> None:
        """
        Replace the permission set of one role (admin only).

        The store is written first; the cached registry changes only after the
        write succeeded.
        """

        self.require(actor, Permission.ACCESS_ADMIN_PANEL)
        role = Role(role)
        granted = sorted({Permission(p) for p in permissions}, key=lambda p: p.value)
        await self._store.save(role, granted)
        self.registry.set(role, granted)
        logger.info(
            "Role permissions updated",
            extra={"role": role.value, "permissions": [p.value for p in granted], "actor_id": actor.id},
        )
        self._notify(Notification(f"Permissions for role {role.value} updated", Severity.SUCCESS))


__all__ = ["PermissionService"]

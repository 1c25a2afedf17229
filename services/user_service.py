"""
User directory service.

Handles:
- Self-registration (always unconfirmed)
- Authentication by e-mail (unconfirmed accounts are refused)
- Administrator actions: confirm, change role, delete, list
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import List
from uuid import uuid4

from domain.errors import InvalidState, NotFound, PermissionDenied, ValidationError
from domain.notification import Notification, NotificationSink, Severity, discard
from domain.roles import Permission, Role
from domain.time import utc_now
from domain.user import Actor, AuthSession, User
from repositories.base import UserStore
from services.permission_service import PermissionService

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class UserService:
    def __init__(self, store: UserStore, permissions: PermissionService, notify: NotificationSink = discard):
        self._store = store
        self._permissions = permissions
        self._notify = notify

    async def register(self, name: str, email: str, role: Role = Role.SELLER) -> User:
        name = name.strip()
        email = email.strip()
        errors = {}
        if not name:
            errors["name"] = "Required"
        if not _EMAIL_RE.match(email):
            errors["email"] = "Invalid e-mail format"
        if errors:
            raise ValidationError("Registration data is invalid", errors)
        if await self._store.find_by_email(email) is not None:
            raise ValidationError("E-mail already registered", {"email": "Already registered"})

        user = User(
            id=str(uuid4()),
            name=name,
            email=email,
            role=Role(role),
            confirmed=False,
            created_at=utc_now(),
        )
        await self._store.create(user)
        logger.info("User registered", extra={"user_id": user.id, "role": user.role.value})
        return user

    async def authenticate(self, email: str) -> AuthSession:
        user = await self._store.find_by_email(email)
        if user is None:
            raise NotFound("User not found")
        if not user.confirmed:
            raise PermissionDenied("Account is awaiting administrator approval")
        self._notify(Notification(f"Welcome, {user.name}!", Severity.SUCCESS))
        return AuthSession(user=user, is_authenticated=True)

    async def resolve(self, user_id: str) -> User:
        """Confirmed user for a session id; unconfirmed users never act."""

        user = await self._store.get(user_id)
        if not user.confirmed:
            raise PermissionDenied("Account is awaiting administrator approval")
        return user

    async def list(self, actor: Actor) -> List[User]:
        self._permissions.require(actor, Permission.ACCESS_ADMIN_PANEL)
        return await self._store.list()

    async def confirm(self, actor: Actor, user_id: str) -> User:
        self._permissions.require(actor, Permission.ACCESS_ADMIN_PANEL)
        user = await self._store.get(user_id)
        await self._store.update(user_id, {"confirmed": True})
        logger.info("User confirmed", extra={"user_id": user_id, "actor_id": actor.id})
        return replace(user, confirmed=True)

    async def change_role(self, actor: Actor, user_id: str, role: Role) -> User:
        self._permissions.require(actor, Permission.ACCESS_ADMIN_PANEL)
        if user_id == actor.id:
            raise InvalidState("Administrators cannot change their own role")
        user = await self._store.get(user_id)
        await self._store.update(user_id, {"role": Role(role)})
        logger.info("User role changed", extra={"user_id": user_id, "role": Role(role).value})
        return replace(user, role=Role(role))

    async def delete(self, actor: Actor, user_id: str) -> None:
        self._permissions.require(actor, Permission.ACCESS_ADMIN_PANEL)
        if user_id == actor.id:
            raise InvalidState("Administrators cannot delete themselves")
        await self._store.delete(user_id)
        logger.info("User deleted", extra={"user_id": user_id, "actor_id": actor.id})
        self._notify(Notification("User removed", Severity.INFO))


__all__ = ["UserService"]

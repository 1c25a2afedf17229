"""
User repository for managing seller, manager and admin accounts.

Persistence only: registration rules, confirmation and role policy live in
`services/user_service.py`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from domain.errors import NotFound
from domain.roles import Role
from domain.time import parse_utc_datetime, to_iso_utc
from domain.user import User
from repositories.client import get_supabase
from repositories.errors import execute, rows_of

_USERS_TABLE: str = "users"


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=str(row["id"]),
        name=str(row["name"]),
        email=str(row["email"]),
        role=Role(str(row["role"])),
        confirmed=bool(row.get("confirmed", False)),
        created_at=parse_utc_datetime(row["created_at"]),
    )


def _serialize(fields: Mapping[str, Any]) -> Dict[str, Any]:
    payload = dict(fields)
    if "role" in payload:
        payload["role"] = Role(payload["role"]).value
    return payload


class SupabaseUserStore:
    """UserStore backed by the Supabase `users` table."""

    def __init__(self, client: Optional[Any] = None):
        self._client = client

    async def _table(self) -> Any:
        client = self._client or await get_supabase()
        return client.table(_USERS_TABLE)

    async def create(self, user: User) -> None:
        payload = {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role.value,
            "confirmed": user.confirmed,
            "created_at": to_iso_utc(user.created_at, name="created_at"),
        }
        table = await self._table()
        await execute(table.insert(payload), "create user")

    async def get(self, user_id: str) -> User:
        table = await self._table()
        response = await execute(table.select("*").eq("id", user_id).limit(1), "fetch user")
        rows = rows_of(response)
        if not rows:
            raise NotFound(f"User not found: {user_id}")
        return _row_to_user(rows[0])

    async def find_by_email(self, email: str) -> Optional[User]:
        """
        Get a user by email address (case-insensitive).

        Returns:
            User or None if not found
        """

        table = await self._table()
        response = await execute(
            table.select("*").ilike("email", email.strip()).limit(1),
            "fetch user by email",
        )
        rows = rows_of(response)
        if not rows:
            return None
        return _row_to_user(rows[0])

    async def list(self) -> List[User]:
        table = await self._table()
        response = await execute(table.select("*").order("created_at"), "list users")
        return [_row_to_user(row) for row in rows_of(response)]

    async def update(self, user_id: str, fields: Mapping[str, Any]) -> None:
        table = await self._table()
        response = await execute(
            table.update(_serialize(fields)).eq("id", user_id),
            "update user",
        )
        if not rows_of(response):
            raise NotFound(f"User not found: {user_id}")

    async def delete(self, user_id: str) -> None:
        table = await self._table()
        response = await execute(table.delete().eq("id", user_id), "delete user")
        if not rows_of(response):
            raise NotFound(f"User not found: {user_id}")


__all__ = ["SupabaseUserStore"]

"""
Role permission repository.

Stores one row per configured role in the `role_permissions` table:
    role (text, primary key), permissions (text[])

Roles without a row fall back to the built-in defaults in `domain/roles.py`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from domain.roles import Permission, Role
from repositories.client import get_supabase
from repositories.errors import execute, rows_of

_PERMISSIONS_TABLE: str = "role_permissions"


class SupabasePermissionStore:
    def __init__(self, client: Optional[Any] = None):
        self._client = client

    async def _table(self) -> Any:
        client = self._client or await get_supabase()
        return client.table(_PERMISSIONS_TABLE)

    async def load(self) -> Dict[str, List[str]]:
        table = await self._table()
        response = await execute(table.select("role, permissions"), "load role permissions")
        return {
            str(row["role"]): [str(p) for p in (row.get("permissions") or [])]
            for row in rows_of(response)
        }

    async def save(self, role: Role, permissions: Sequence[Permission]) -> None:
        payload = {
            "role": Role(role).value,
            "permissions": sorted(Permission(p).value for p in permissions),
        }
        table = await self._table()
        await execute(table.upsert(payload, on_conflict="role"), "save role permissions")


__all__ = ["SupabasePermissionStore"]

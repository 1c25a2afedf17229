"""
In-memory store implementations.

Same contracts as the Supabase repositories (including NotFound on missing
records and last-write-wins updates). Used by the test suite, local demos and
any embedding that does not need durable storage.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from domain.errors import NotFound
from domain.roles import Permission, Role
from domain.sale import Sale
from domain.user import User
from repositories.base import SaleFilter


class _Latency:
    def __init__(self, latency: float = 0.0):
        self._latency = latency

    async def _io(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)


class InMemorySaleStore(_Latency):
    def __init__(self, sales: Sequence[Sale] = (), latency: float = 0.0):
        super().__init__(latency)
        self._rows: Dict[str, Sale] = {}
        for sale in sales:
            sale_id = sale.id or str(uuid4())
            self._rows[sale_id] = replace(sale, id=sale_id)

    async def create(self, sale: Sale) -> str:
        await self._io()
        sale_id = sale.id or str(uuid4())
        self._rows[sale_id] = replace(sale, id=sale_id, customer_data=dict(sale.customer_data))
        return sale_id

    async def get(self, sale_id: str) -> Sale:
        await self._io()
        try:
            sale = self._rows[sale_id]
        except KeyError:
            raise NotFound(f"Sale not found: {sale_id}") from None
        return replace(sale, customer_data=dict(sale.customer_data))

    async def update(self, sale_id: str, fields: Mapping[str, Any]) -> None:
        await self._io()
        if sale_id not in self._rows:
            raise NotFound(f"Sale not found: {sale_id}")
        self._rows[sale_id] = replace(self._rows[sale_id], **dict(fields))

    async def delete(self, sale_id: str) -> None:
        await self._io()
        if self._rows.pop(sale_id, None) is None:
            raise NotFound(f"Sale not found: {sale_id}")

    async def list(self, sale_filter: SaleFilter) -> List[Sale]:
        await self._io()
        matching = [sale for sale in self._rows.values() if sale_filter.matches(sale)]
        return sorted(matching, key=lambda sale: sale.created_at, reverse=True)


class InMemoryUserStore(_Latency):
    def __init__(self, users: Sequence[User] = (), latency: float = 0.0):
        super().__init__(latency)
        self._rows: Dict[str, User] = {user.id: user for user in users}

    async def create(self, user: User) -> None:
        await self._io()
        self._rows[user.id] = user

    async def get(self, user_id: str) -> User:
        await self._io()
        try:
            return self._rows[user_id]
        except KeyError:
            raise NotFound(f"User not found: {user_id}") from None

    async def find_by_email(self, email: str) -> Optional[User]:
        await self._io()
        wanted = email.strip().lower()
        for user in self._rows.values():
            if user.email.lower() == wanted:
                return user
        return None

    async def list(self) -> List[User]:
        await self._io()
        return sorted(self._rows.values(), key=lambda user: user.created_at)

    async def update(self, user_id: str, fields: Mapping[str, Any]) -> None:
        await self._io()
        if user_id not in self._rows:
            raise NotFound(f"User not found: {user_id}")
        self._rows[user_id] = replace(self._rows[user_id], **dict(fields))

    async def delete(self, user_id: str) -> None:
        await self._io()
        if self._rows.pop(user_id, None) is None:
            raise NotFound(f"User not found: {user_id}")


class InMemoryPermissionStore(_Latency):
    def __init__(self, rows: Optional[Mapping[str, Sequence[str]]] = None, latency: float = 0.0):
        super().__init__(latency)
        self._rows: Dict[str, List[str]] = {role: list(perms) for role, perms in (rows or {}).items()}

    async def load(self) -> Dict[str, List[str]]:
        await self._io()
        return {role: list(perms) for role, perms in self._rows.items()}

    async def save(self, role: Role, permissions: Sequence[Permission]) -> None:
        await self._io()
        self._rows[Role(role).value] = sorted(Permission(p).value for p in permissions)


__all__ = ["InMemorySaleStore", "InMemoryUserStore", "InMemoryPermissionStore"]

"""
Store interfaces consumed by the engine.

Every call is an asynchronous I/O boundary. Implementations must raise
`NotFound` for a missing record and `StoreUnavailable` for transient failures,
so callers can tell "fatal to this operation" from "safe to retry".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from domain.roles import Permission, Role
from domain.sale import Sale, SaleStatus
from domain.user import User


@dataclass(frozen=True, slots=True)
class SaleFilter:
    """
    Record selection for `SaleStore.list`.

    owner_id: only sales of this seller
    status_not: exclude sales in this status
    Both None selects all sales.
    """

    owner_id: Optional[str] = None
    status_not: Optional[SaleStatus] = None

    @classmethod
    def all(cls) -> "SaleFilter":
        return cls()

    @classmethod
    def by_owner(cls, owner_id: str) -> "SaleFilter":
        return cls(owner_id=owner_id)

    @classmethod
    def submitted(cls) -> "SaleFilter":
        return cls(status_not=SaleStatus.DRAFT)

    def matches(self, sale: Sale) -> bool:
        if self.owner_id is not None and sale.seller_id != self.owner_id:
            return False
        if self.status_not is not None and sale.status is self.status_not:
            return False
        return True


class SaleStore(Protocol):
    async def create(self, sale: Sale) -> str: ...

    async def get(self, sale_id: str) -> Sale: ...

    async def update(self, sale_id: str, fields: Mapping[str, Any]) -> None: ...

    async def delete(self, sale_id: str) -> None: ...

    async def list(self, sale_filter: SaleFilter) -> List[Sale]: ...


class UserStore(Protocol):
    async def create(self, user: User) -> None: ...

    async def get(self, user_id: str) -> User: ...

    async def find_by_email(self, email: str) -> Optional[User]: ...

    async def list(self) -> List[User]: ...

    async def update(self, user_id: str, fields: Mapping[str, Any]) -> None: ...

    async def delete(self, user_id: str) -> None: ...


class PermissionStore(Protocol):
    async def load(self) -> Dict[str, List[str]]: ...

    async def save(self, role: Role, permissions: Sequence[Permission]) -> None: ...


__all__ = ["SaleFilter", "SaleStore", "UserStore", "PermissionStore"]

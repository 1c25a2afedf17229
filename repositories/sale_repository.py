"""
Sale repository (persistence).

This module provides *only* persistence operations for the Sale domain entity.
It does not enforce lifecycle rules (edges, permissions, justification); it
only inserts, patches, deletes and lists sale rows.

Concurrent updates from different sessions resolve last-write-wins: no version
column is compared on update.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

from domain.customer import normalize_customer_data
from domain.errors import NotFound, StoreError
from domain.sale import Sale, SaleStatus, StatusHistoryEntry
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.base import SaleFilter
from repositories.client import get_supabase
from repositories.errors import execute, rows_of

# Supabase table name for sale records.
# Keep this aligned with your database schema.
_SALES_TABLE: str = "sales"


def _entry_to_json(entry: StatusHistoryEntry) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "status": entry.status.value,
        "updatedBy": entry.updated_by,
        "updatedAt": to_iso_utc(entry.updated_at, name="updatedAt"),
    }
    if entry.reason is not None:
        payload["reason"] = entry.reason
    return payload


def _entry_from_json(raw: Mapping[str, Any]) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        status=SaleStatus(str(raw["status"])),
        updated_by=str(raw.get("updatedBy") or ""),
        updated_at=parse_utc_datetime(raw["updatedAt"]),
        reason=raw.get("reason"),
    )


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """
    Convert a Supabase row into a Sale.

    Raises:
        StoreError: the row is missing columns or breaks a Sale invariant
    """

    try:
        history = tuple(_entry_from_json(item) for item in (row.get("status_history") or []))
        return Sale(
            id=str(row["id"]),
            seller_id=str(row["seller_id"]),
            seller_name=str(row.get("seller_name") or ""),
            customer_data=normalize_customer_data(row.get("customer_data") or {}),
            status=SaleStatus(str(row["status"])),
            created_at=parse_utc_datetime(row["created_at"]),
            status_history=history,
            return_reason=row.get("return_reason"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise StoreError(f"Malformed sale row {row.get('id')!r}: {e}") from e


_FIELD_SERIALIZERS: Dict[str, Callable[[Any], Any]] = {
    "status": lambda value: SaleStatus(value).value,
    "status_history": lambda value: [_entry_to_json(entry) for entry in value],
    "return_reason": lambda value: value,
    "customer_data": lambda value: dict(value),
    "seller_name": lambda value: value,
}


def serialize_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert a partial update expressed in domain values into column values."""

    payload: Dict[str, Any] = {}
    for name, value in fields.items():
        serializer = _FIELD_SERIALIZERS.get(name)
        if serializer is None:
            raise ValueError(f"Sale field cannot be updated: {name!r}")
        payload[name] = serializer(value)
    return payload


def sale_to_row(sale: Sale) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "seller_id": sale.seller_id,
        "seller_name": sale.seller_name,
        "customer_data": dict(sale.customer_data),
        "status": sale.status.value,
        "status_history": [_entry_to_json(entry) for entry in sale.status_history],
        "created_at": to_iso_utc(sale.created_at, name="created_at"),
        "return_reason": sale.return_reason,
    }
    if sale.id is not None:
        row["id"] = sale.id
    return row


class SupabaseSaleStore:
    """SaleStore backed by the Supabase `sales` table."""

    def __init__(self, client: Optional[Any] = None):
        self._client = client

    async def _table(self) -> Any:
        client = self._client or await get_supabase()
        return client.table(_SALES_TABLE)

    async def create(self, sale: Sale) -> str:
        """
        Insert a new sale row.

        Returns:
            The identity assigned by the store
        """

        table = await self._table()
        response = await execute(table.insert(sale_to_row(sale)), "create sale")
        rows = rows_of(response)
        if not rows:
            return sale.id or ""
        return str(rows[0]["id"])

    async def get(self, sale_id: str) -> Sale:
        table = await self._table()
        response = await execute(
            table.select("*").eq("id", sale_id).limit(1),
            "get sale",
        )
        rows = rows_of(response)
        if not rows:
            raise NotFound(f"Sale not found: {sale_id}")
        return _row_to_sale(rows[0])

    async def update(self, sale_id: str, fields: Mapping[str, Any]) -> None:
        table = await self._table()
        response = await execute(
            table.update(serialize_fields(fields)).eq("id", sale_id),
            "update sale",
        )
        if not rows_of(response):
            raise NotFound(f"Sale not found: {sale_id}")

    async def delete(self, sale_id: str) -> None:
        table = await self._table()
        response = await execute(table.delete().eq("id", sale_id), "delete sale")
        if not rows_of(response):
            raise NotFound(f"Sale not found: {sale_id}")

    async def list(self, sale_filter: SaleFilter) -> List[Sale]:
        """
        Retrieve sales matching `sale_filter`, newest first.

        Returns:
            List[Sale] (possibly empty)
        """

        table = await self._table()
        query = table.select("*")
        if sale_filter.owner_id is not None:
            query = query.eq("seller_id", sale_filter.owner_id)
        if sale_filter.status_not is not None:
            query = query.neq("status", sale_filter.status_not.value)
        response = await execute(query.order("created_at", desc=True), "list sales")
        return [_row_to_sale(row) for row in rows_of(response)]


__all__ = ["SupabaseSaleStore", "sale_to_row", "serialize_fields"]

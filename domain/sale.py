"""
Domain: Sale records and their status history.

Rules implemented here:
- status_history is append-only; entries are never rewritten or removed.
- Once a Sale leaves DRAFT its history is non-empty and the last entry's
  status equals the Sale's current status.
- return_reason holds the justification of the most recent transition only
  when that transition was a regression.

Transition rules (which edges exist, who may drive them) live in
`domain/lifecycle.py`. This module only captures the record shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .customer import CustomerData
from .time import require_utc_timestamp


class SaleStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    ANALYZED = "ANALYZED"
    FINISHED = "FINISHED"


APPROVED_STATUSES = frozenset({SaleStatus.ANALYZED, SaleStatus.FINISHED})


def is_regression(current: SaleStatus, target: SaleStatus) -> bool:
    """A regression moves an approved-adjacent Sale back to IN_PROGRESS."""

    return current in APPROVED_STATUSES and target is SaleStatus.IN_PROGRESS


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    status: SaleStatus
    updated_by: str
    updated_at: datetime
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("updated_at", self.updated_at)


@dataclass(frozen=True, slots=True)
class Sale:
    """
    One customer-intake record moving through the review workflow.

    `id` is None only for a Sale that has never been persisted.
    """

    id: Optional[str]
    seller_id: str
    seller_name: str
    customer_data: CustomerData
    status: SaleStatus
    created_at: datetime
    status_history: Tuple[StatusHistoryEntry, ...] = field(default_factory=tuple)
    return_reason: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.status is not SaleStatus.DRAFT:
            if not self.status_history:
                raise ValueError("status_history must not be empty once a sale leaves DRAFT")
            if self.status_history[-1].status is not self.status:
                raise ValueError(
                    f"last history status {self.status_history[-1].status.value} "
                    f"does not match sale status {self.status.value}"
                )

    @property
    def latest_entry(self) -> Optional[StatusHistoryEntry]:
        return self.status_history[-1] if self.status_history else None

    @property
    def is_draft(self) -> bool:
        return self.status is SaleStatus.DRAFT

    def in_regression(self) -> bool:
        """True iff the latest history entry was produced by a regression edge."""

        if len(self.status_history) < 2:
            return False
        previous, latest = self.status_history[-2], self.status_history[-1]
        return is_regression(previous.status, latest.status)

    def with_transition(self, entry: StatusHistoryEntry, return_reason: Optional[str]) -> "Sale":
        """New Sale with `entry` appended; history is only ever extended."""

        return replace(
            self,
            status=entry.status,
            status_history=self.status_history + (entry,),
            return_reason=return_reason,
        )

    def with_customer_data(self, customer_data: CustomerData) -> "Sale":
        return replace(self, customer_data=dict(customer_data))


__all__ = [
    "SaleStatus",
    "APPROVED_STATUSES",
    "is_regression",
    "StatusHistoryEntry",
    "Sale",
]

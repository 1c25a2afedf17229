"""
Tests for `domain/sale.py`.

Covers contract rules:
- Timestamps are required to be UTC.
- A non-draft Sale has a non-empty history whose last status matches its status.
- History only grows through `with_transition`.
- A Sale is "in regression" only when its latest entry came from a regression edge.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from domain.sale import Sale, SaleStatus, StatusHistoryEntry, is_regression

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def _entry(status: SaleStatus, minutes: int = 0, reason=None) -> StatusHistoryEntry:
    return StatusHistoryEntry(status=status, updated_by="Tester", updated_at=T0 + timedelta(minutes=minutes), reason=reason)


def _sale(status: SaleStatus, *history: StatusHistoryEntry, return_reason=None) -> Sale:
    return Sale(
        id="sale-1",
        seller_id="seller-1",
        seller_name="Ana Vendedora",
        customer_data={"nome": "Ana Silva"},
        status=status,
        created_at=T0,
        status_history=tuple(history),
        return_reason=return_reason,
    )


def test_timestamps_must_be_utc() -> None:
    """Verify created_at and history timestamps enforce UTC."""

    with pytest.raises(ValueError):
        StatusHistoryEntry(status=SaleStatus.DRAFT, updated_by="x", updated_at=datetime(2025, 1, 1))

    with pytest.raises(ValueError):
        Sale(
            id=None,
            seller_id="s",
            seller_name="S",
            customer_data={},
            status=SaleStatus.DRAFT,
            created_at=datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=-3))),
        )


def test_non_draft_requires_history() -> None:
    with pytest.raises(ValueError):
        _sale(SaleStatus.IN_PROGRESS)


def test_last_history_entry_must_match_status() -> None:
    with pytest.raises(ValueError):
        _sale(SaleStatus.ANALYZED, _entry(SaleStatus.DRAFT), _entry(SaleStatus.IN_PROGRESS, 1))


def test_draft_may_have_empty_history() -> None:
    sale = _sale(SaleStatus.DRAFT)

    assert sale.is_draft
    assert sale.latest_entry is None


def test_sale_is_immutable() -> None:
    sale = _sale(SaleStatus.DRAFT, _entry(SaleStatus.DRAFT))

    with pytest.raises(FrozenInstanceError):
        sale.status = SaleStatus.FINISHED  # type: ignore[misc]


def test_with_transition_appends_entry() -> None:
    """Verify transitions extend the history and never rewrite earlier entries."""

    sale = _sale(SaleStatus.DRAFT, _entry(SaleStatus.DRAFT))
    entry = _entry(SaleStatus.IN_PROGRESS, 5)

    updated = sale.with_transition(entry, return_reason=None)

    assert updated.status is SaleStatus.IN_PROGRESS
    assert updated.status_history[:1] == sale.status_history
    assert updated.latest_entry == entry
    assert sale.status is SaleStatus.DRAFT


@pytest.mark.parametrize(
    "current,target,expected",
    [
        (SaleStatus.ANALYZED, SaleStatus.IN_PROGRESS, True),
        (SaleStatus.FINISHED, SaleStatus.IN_PROGRESS, True),
        (SaleStatus.DRAFT, SaleStatus.IN_PROGRESS, False),
        (SaleStatus.IN_PROGRESS, SaleStatus.ANALYZED, False),
    ],
)
def test_is_regression(current, target, expected) -> None:
    assert is_regression(current, target) is expected


def test_in_regression_reads_last_two_entries() -> None:
    """Verify only a latest entry produced by a regression edge counts."""

    regressed = _sale(
        SaleStatus.IN_PROGRESS,
        _entry(SaleStatus.DRAFT),
        _entry(SaleStatus.IN_PROGRESS, 1),
        _entry(SaleStatus.ANALYZED, 2),
        _entry(SaleStatus.IN_PROGRESS, 3, reason="documento ilegível"),
        return_reason="documento ilegível",
    )
    reapproved = regressed.with_transition(_entry(SaleStatus.ANALYZED, 4), return_reason=None)

    assert regressed.in_regression()
    assert not reapproved.in_regression()
    assert not _sale(SaleStatus.IN_PROGRESS, _entry(SaleStatus.IN_PROGRESS)).in_regression()

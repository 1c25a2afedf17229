"""
Tests for `services/reporting_service.py`.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from domain.errors import PermissionDenied
from domain.roles import Permission, Role
from domain.sale import Sale, SaleStatus, StatusHistoryEntry
from services.reporting_service import DashboardService, summarize

TODAY = date(2025, 3, 10)


def _sale(status: SaleStatus, day: date, seller_id: str = "seller-1") -> Sale:
    created = datetime(day.year, day.month, day.day, 15, 0, tzinfo=timezone.utc)
    history = () if status is SaleStatus.DRAFT else (
        StatusHistoryEntry(status=status, updated_by="Tester", updated_at=created),
    )
    return Sale(
        id=None,
        seller_id=seller_id,
        seller_name="Ana Vendedora",
        customer_data={"nome": "Ana Silva"},
        status=status,
        created_at=created,
        status_history=history,
    )


def test_summarize_counts_submitted_sales_only() -> None:
    sales = [
        _sale(SaleStatus.DRAFT, TODAY),
        _sale(SaleStatus.IN_PROGRESS, TODAY),
        _sale(SaleStatus.ANALYZED, TODAY - timedelta(days=1)),
        _sale(SaleStatus.FINISHED, TODAY - timedelta(days=2)),
        _sale(SaleStatus.FINISHED, TODAY - timedelta(days=30)),
    ]

    summary = summarize(sales, TODAY)

    assert summary.total == 4
    assert summary.finished == 2
    assert summary.analyzed == 1
    assert summary.in_progress == 1
    assert summary.conversion_rate == 50.0


def test_summarize_daily_trend_is_oldest_first() -> None:
    sales = [
        _sale(SaleStatus.IN_PROGRESS, TODAY),
        _sale(SaleStatus.IN_PROGRESS, TODAY),
        _sale(SaleStatus.FINISHED, TODAY - timedelta(days=6)),
        _sale(SaleStatus.FINISHED, TODAY - timedelta(days=7)),
    ]

    summary = summarize(sales, TODAY)

    assert len(summary.daily_counts) == 7
    assert summary.daily_counts[0] == (TODAY - timedelta(days=6), 1)
    assert summary.daily_counts[-1] == (TODAY, 2)
    assert sum(count for _, count in summary.daily_counts) == 3


def test_summarize_empty() -> None:
    summary = summarize([], TODAY)

    assert summary.total == 0
    assert summary.conversion_rate == 0.0


@pytest.mark.asyncio
async def test_dashboard_requires_permission(workflow, sale_store, manager) -> None:
    service = DashboardService(sale_store, workflow.permissions)

    with pytest.raises(PermissionDenied):
        await service.summary(manager, TODAY)


@pytest.mark.asyncio
async def test_dashboard_scope_follows_visibility(workflow, admin, seller, other_seller, valid_form) -> None:
    """Verify cross-seller viewers count everyone while other viewers count only their own sales."""

    await workflow.engine.submit(seller, valid_form)
    await workflow.engine.submit(other_seller, valid_form)
    await workflow.engine.save_draft(seller, {"nome": "Rascunho"})
    workflow.permissions.registry.set(
        Role.SELLER, [Permission.VIEW_OWN_SALES, Permission.CREATE_SALES, Permission.VIEW_DASHBOARD]
    )

    everyone = await workflow.dashboard.summary(admin)
    own = await workflow.dashboard.summary(seller)

    assert everyone.total == 2
    assert everyone.in_progress == 2
    assert own.total == 1


@pytest.mark.asyncio
async def test_dashboard_poller_caches_summary(workflow, admin, seller, valid_form) -> None:
    await workflow.engine.submit(seller, valid_form)
    refreshed = []
    poller = workflow.open_dashboard_view(admin, on_refresh=refreshed.append)

    summary = await poller.refresh()

    assert poller.summary == summary
    assert summary.total == 1
    assert refreshed == [summary]
    assert poller.interval == workflow.settings.dashboard_poll_interval

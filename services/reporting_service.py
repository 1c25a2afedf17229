"""
Dashboard summary of submitted sales.

Only non-draft sales are counted. Reviewers see every seller's sales; anyone
else sees only their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Tuple

from domain.errors import PermissionDenied
from domain.roles import Permission
from domain.sale import Sale, SaleStatus
from domain.time import utc_now
from domain.user import Actor
from repositories.base import SaleFilter, SaleStore
from services.permission_service import PermissionService
from services.sync_service import PeriodicRefresh

TREND_DAYS = 7


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    total: int
    finished: int
    analyzed: int
    in_progress: int
    conversion_rate: float  # percent, one decimal
    daily_counts: Tuple[Tuple[date, int], ...]  # oldest first


def summarize(sales: Iterable[Sale], today: date) -> DashboardSummary:
    submitted = [sale for sale in sales if not sale.is_draft]
    total = len(submitted)
    finished = sum(1 for s in submitted if s.status is SaleStatus.FINISHED)
    analyzed = sum(1 for s in submitted if s.status is SaleStatus.ANALYZED)
    in_progress = sum(1 for s in submitted if s.status is SaleStatus.IN_PROGRESS)
    conversion = round(finished / total * 100, 1) if total else 0.0

    days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]
    daily = tuple((day, sum(1 for s in submitted if s.created_at.date() == day)) for day in days)

    return DashboardSummary(
        total=total,
        finished=finished,
        analyzed=analyzed,
        in_progress=in_progress,
        conversion_rate=conversion,
        daily_counts=daily,
    )


class DashboardService:
    def __init__(self, store: SaleStore, permissions: PermissionService):
        self._store = store
        self._permissions = permissions

    def _filter_for(self, actor: Actor) -> SaleFilter:
        if not self._permissions.check(actor, Permission.VIEW_DASHBOARD):
            raise PermissionDenied("Missing permission: VIEW_DASHBOARD")
        if self._permissions.check(actor, Permission.VIEW_ALL_SALES):
            return SaleFilter.submitted()
        return SaleFilter(owner_id=actor.id, status_not=SaleStatus.DRAFT)

    async def summary(self, actor: Actor, today: Optional[date] = None) -> DashboardSummary:
        sales = await self._store.list(self._filter_for(actor))
        return summarize(sales, today or utc_now().date())


class DashboardPoller(PeriodicRefresh[DashboardSummary]):
    def __init__(
        self,
        service: DashboardService,
        actor: Actor,
        interval: float,
        on_refresh: Optional[Callable[[DashboardSummary], None]] = None,
    ):
        super().__init__(interval, on_refresh)
        self._service = service
        self._actor = actor
        self.summary: Optional[DashboardSummary] = None

    async def _fetch(self) -> DashboardSummary:
        return await self._service.summary(self._actor)

    def _apply(self, summary: DashboardSummary) -> None:
        self.summary = summary


__all__ = ["DashboardSummary", "summarize", "DashboardService", "DashboardPoller"]

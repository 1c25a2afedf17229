"""
Synchronization pollers.

Each open view owns a cancellable repeating task that re-reads its slice of the
shared sale set and replaces the cached copy wholesale (no incremental merge).
There is no push channel: observers converge on the store state within one
poll interval.

Regression alerts:
- After each refresh every fetched Sale whose latest history entry is a
  regression is a current regression.
- Each Sale id alerts at most once. The seen-set is keyed by Sale id and is
  never cleared unless `reset_on_reapproval` is enabled, in which case a Sale
  that left its regressed state can alert again on a later regression.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, FrozenSet, Generic, Iterable, List, Optional, Set, TypeVar

from domain.errors import StoreUnavailable, WorkflowError
from domain.notification import Notification, NotificationSink, Severity, discard
from domain.roles import Permission
from domain.sale import Sale
from domain.user import Actor
from services.lifecycle_service import LifecycleEngine
from services.settings import EngineSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RegressionTracker:
    def __init__(self, reset_on_reapproval: bool = False):
        self.reset_on_reapproval = reset_on_reapproval
        self._seen: Set[str] = set()

    @property
    def seen(self) -> FrozenSet[str]:
        return frozenset(self._seen)

    def scan(self, sales: Iterable[Sale]) -> List[Sale]:
        """
        Record the regressions present in `sales`.

        Returns:
            Sales that should raise a new alert, in input order
        """

        fresh: List[Sale] = []
        for sale in sales:
            if sale.id is None:
                continue
            if sale.in_regression():
                if sale.id not in self._seen:
                    self._seen.add(sale.id)
                    fresh.append(sale)
            elif self.reset_on_reapproval:
                self._seen.discard(sale.id)
        return fresh


class PeriodicRefresh(Generic[T]):
    """
    Repeating refresh task bound to one view.

    `refresh()` may also be awaited directly for an immediate reload. Once
    `stop()` has been called no refresh result is applied anymore.
    """

    def __init__(self, interval: float, on_refresh: Optional[Callable[[T], None]] = None):
        self.interval = interval
        self._on_refresh = on_refresh
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _fetch(self) -> T:
        raise NotImplementedError

    def _apply(self, value: T) -> None:
        raise NotImplementedError

    async def refresh(self) -> Optional[T]:
        value = await self._fetch()
        if self._stopped:
            return None
        self._apply(value)
        if self._on_refresh is not None:
            self._on_refresh(value)
        return value

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError("A stopped poller cannot be restarted")
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self) -> None:
        while not self._stopped:
            try:
                await self.refresh()
            except StoreUnavailable as e:
                logger.warning(
                    "Refresh failed, retrying on next tick",
                    extra={"poller": type(self).__name__, "error": str(e)},
                )
            except WorkflowError as e:
                logger.error(
                    "Refresh rejected",
                    extra={"poller": type(self).__name__, "error": str(e)},
                )
            except Exception:
                logger.exception("Refresh failed unexpectedly", extra={"poller": type(self).__name__})
            await asyncio.sleep(self.interval)


class SalesPoller(PeriodicRefresh[List[Sale]]):
    """Keeps an actor's visible sale list fresh and raises regression alerts."""

    def __init__(
        self,
        engine: LifecycleEngine,
        actor: Actor,
        interval: float,
        tracker: Optional[RegressionTracker] = None,
        notify: NotificationSink = discard,
        on_refresh: Optional[Callable[[List[Sale]], None]] = None,
    ):
        super().__init__(interval, on_refresh)
        self._engine = engine
        self._actor = actor
        self._tracker = tracker
        self._notify = notify
        self.sales: List[Sale] = []
        self.regressions: FrozenSet[str] = frozenset()

    async def _fetch(self) -> List[Sale]:
        return await self._engine.visible_sales(self._actor)

    def _apply(self, sales: List[Sale]) -> None:
        self.sales = list(sales)
        self.regressions = frozenset(s.id for s in sales if s.id is not None and s.in_regression())
        if self._tracker is None:
            return
        for sale in self._tracker.scan(sales):
            logger.info("Regression detected", extra={"sale_id": sale.id, "actor_id": self._actor.id})
            self._notify(
                Notification(
                    f"ALERT: sale #{sale.id} was returned for rework after a previous approval",
                    Severity.WARNING,
                )
            )

    def for_seller(self, seller_id: Optional[str] = None) -> List[Sale]:
        """Cached sales, optionally narrowed to one seller."""

        if seller_id is None:
            return list(self.sales)
        return [sale for sale in self.sales if sale.seller_id == seller_id]


def sales_poller_for(
    engine: LifecycleEngine,
    actor: Actor,
    settings: EngineSettings,
    notify: NotificationSink = discard,
    on_refresh: Optional[Callable[[List[Sale]], None]] = None,
) -> SalesPoller:
    """Cross-seller reviewers poll faster and receive regression alerts; sellers do not."""

    if engine.registry.check(actor, Permission.VIEW_ALL_SALES):
        return SalesPoller(
            engine,
            actor,
            settings.manager_poll_interval,
            tracker=RegressionTracker(settings.regression_alert_reset),
            notify=notify,
            on_refresh=on_refresh,
        )
    return SalesPoller(engine, actor, settings.seller_poll_interval, notify=notify, on_refresh=on_refresh)


__all__ = ["RegressionTracker", "PeriodicRefresh", "SalesPoller", "sales_poller_for"]

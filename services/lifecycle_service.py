"""
Lifecycle engine: the only writer of Sale status.

Handles:
- Status transitions (permission gate, edge validation, regression
  justification, history append) written through the SaleStore
- Draft persistence (create / reset-to-single-entry history on every save)
- Submission of drafts, amendment of returned sales, draft deletion
- Per-actor visibility of the shared sale set

Ordering:
- Within one engine (one client session) operations on the same Sale id are
  serialized; a second transition waits for the first one's store result and
  then plans against the state that first transition produced.
- Per-sale lock state only lives while an operation on that sale is running
  or queued, so a long-lived engine does not accumulate it.
- Across engines nothing is serialized: concurrent writes to the same Sale
  resolve last-write-wins at the store.

Failure policy:
- Every check runs before the store is touched; a rejected operation performs
  zero writes.
- A failed store write leaves the engine's view unchanged and the store's
  error propagates as-is.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Mapping, Optional

from domain.customer import CustomerData, has_identity, normalize_customer_data, validate_for_submission
from domain.errors import InvalidState, InvalidTransition, NotFound, PermissionDenied, ValidationError
from domain.lifecycle import plan_transition
from domain.roles import Permission, PermissionRegistry
from domain.sale import Sale, SaleStatus, StatusHistoryEntry
from domain.time import utc_now
from domain.user import Actor
from repositories.base import SaleFilter, SaleStore
from services.permission_service import PermissionService

logger = logging.getLogger(__name__)


def visibility_filter(registry: PermissionRegistry, actor: Optional[Actor]) -> SaleFilter:
    """
    Sales an actor may observe.

    Cross-seller viewers never see drafts; sellers see all of their own records.
    """

    if registry.check(actor, Permission.VIEW_ALL_SALES):
        return SaleFilter.submitted()
    if actor is not None and registry.check(actor, Permission.VIEW_OWN_SALES):
        return SaleFilter.by_owner(actor.id)
    raise PermissionDenied("Actor may not view sales")


class _SaleGuard:
    """Lock for one sale id plus the state its last holder wrote."""

    __slots__ = ("lock", "holders", "written")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0
        self.written: Optional[Sale] = None

    def latest(self, sale: Sale) -> Sale:
        """Prefer the state a queued predecessor wrote when it is at least as recent."""

        written = self.written
        if written is not None and len(written.status_history) >= len(sale.status_history):
            return written
        return sale

    def remember(self, sale: Sale) -> Sale:
        self.written = sale
        return sale


class LifecycleEngine:
    def __init__(
        self,
        store: SaleStore,
        permissions: PermissionService,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._permissions = permissions
        self._clock = clock
        self._guards: Dict[str, _SaleGuard] = {}

    @property
    def registry(self) -> PermissionRegistry:
        return self._permissions.registry

    @property
    def busy_sales(self) -> int:
        """Number of sale ids with an operation running or queued."""

        return len(self._guards)

    @asynccontextmanager
    async def _serialized(self, sale_id: str) -> AsyncIterator[_SaleGuard]:
        guard = self._guards.get(sale_id)
        if guard is None:
            guard = self._guards[sale_id] = _SaleGuard()
        guard.holders += 1
        try:
            async with guard.lock:
                yield guard
        finally:
            guard.holders -= 1
            if guard.holders == 0:
                del self._guards[sale_id]

    @staticmethod
    def _require_persisted(sale: Sale) -> str:
        if sale.id is None:
            raise InvalidState("Sale has not been persisted yet")
        return sale.id

    async def apply_transition(
        self,
        sale: Sale,
        target: SaleStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Sale:
        """
        Move `sale` to `target` on behalf of `actor`.

        Returns:
            The updated Sale, for immediate reflection in the caller's view

        Raises:
            InvalidTransition, PermissionDenied, ValidationError: nothing written
            NotFound, StoreError, StoreUnavailable: from the store, nothing applied
        """

        sale_id = self._require_persisted(sale)
        async with self._serialized(sale_id) as guard:
            current = guard.latest(sale)
            try:
                updated, regression = plan_transition(
                    current, target, actor, self.registry, self._clock(), reason
                )
            except InvalidTransition as e:
                logger.error(
                    "Rejected invalid sale transition",
                    extra={"sale_id": sale_id, "from": e.current, "to": e.target, "actor_id": actor.id},
                )
                raise

            await self._store.update(
                sale_id,
                {
                    "status": updated.status,
                    "status_history": updated.status_history,
                    "return_reason": updated.return_reason,
                },
            )
            logger.info(
                "Sale status changed",
                extra={
                    "sale_id": sale_id,
                    "from": current.status.value,
                    "to": updated.status.value,
                    "regression": regression,
                    "actor_id": actor.id,
                },
            )
            return guard.remember(updated)

    async def save_draft(
        self,
        actor: Actor,
        form: Mapping[str, object],
        sale_id: Optional[str] = None,
    ) -> Sale:
        """
        Persist an unsubmitted form as a DRAFT Sale.

        A draft's history is reset to a single DRAFT entry on every save; it is
        only appended to from the first real submission onwards.

        Returns:
            The saved draft; its `id` is the stable identity to reuse on later saves
        """

        self._permissions.require(actor, Permission.CREATE_SALES)
        if not has_identity(form):
            raise ValidationError("Draft has no identifying data", {"nome": "Required"})

        now = self._clock()
        entry = StatusHistoryEntry(status=SaleStatus.DRAFT, updated_by=actor.name, updated_at=now)
        data = normalize_customer_data(form)

        if sale_id is None:
            draft = Sale(
                id=None,
                seller_id=actor.id,
                seller_name=actor.name,
                customer_data=data,
                status=SaleStatus.DRAFT,
                created_at=now,
                status_history=(entry,),
            )
            new_id = await self._store.create(draft)
            logger.info("Draft created", extra={"sale_id": new_id, "seller_id": actor.id})
            return replace(draft, id=new_id)

        async with self._serialized(sale_id) as guard:
            existing = await self._store.get(sale_id)
            if existing.seller_id != actor.id:
                raise PermissionDenied("Only the owning seller may edit a draft")
            if not existing.is_draft:
                raise InvalidState(f"Sale {sale_id} is {existing.status.value}, not a draft")

            fields = {
                "customer_data": data,
                "status": SaleStatus.DRAFT,
                "status_history": (entry,),
                "return_reason": None,
            }
            await self._store.update(sale_id, fields)
            logger.info("Draft saved", extra={"sale_id": sale_id, "seller_id": actor.id})
            return guard.remember(
                replace(existing, customer_data=data, status_history=(entry,), return_reason=None)
            )

    async def submit(
        self,
        actor: Actor,
        form: Mapping[str, object],
        sale: Optional[Sale] = None,
    ) -> Sale:
        """
        Submit an intake form for review (DRAFT -> IN_PROGRESS).

        `sale` is the persisted draft being submitted; without it the Sale is
        created directly in IN_PROGRESS.

        Raises:
            ValidationError: with per-field messages when the form is incomplete
        """

        data = normalize_customer_data(form)

        if sale is None or sale.id is None:
            now = self._clock()
            draft = Sale(
                id=None,
                seller_id=actor.id,
                seller_name=actor.name,
                customer_data=data,
                status=SaleStatus.DRAFT,
                created_at=now,
            )
            submitted, _ = plan_transition(draft, SaleStatus.IN_PROGRESS, actor, self.registry, now)
            _raise_for_form(data)
            new_id = await self._store.create(submitted)
            logger.info("Sale submitted", extra={"sale_id": new_id, "seller_id": actor.id})
            return replace(submitted, id=new_id)

        async with self._serialized(sale.id) as guard:
            current = guard.latest(sale).with_customer_data(data)
            submitted, _ = plan_transition(
                current, SaleStatus.IN_PROGRESS, actor, self.registry, self._clock()
            )
            _raise_for_form(data)
            await self._store.update(
                sale.id,
                {
                    "customer_data": data,
                    "status": submitted.status,
                    "status_history": submitted.status_history,
                    "return_reason": None,
                },
            )
            logger.info("Sale submitted", extra={"sale_id": sale.id, "seller_id": actor.id})
            return guard.remember(submitted)

    async def amend(self, actor: Actor, sale: Sale, form: Mapping[str, object]) -> Sale:
        """
        Correct the customer data of a sale returned for rework.

        A data edit only: status, history and return_reason are untouched.
        """

        sale_id = self._require_persisted(sale)
        async with self._serialized(sale_id) as guard:
            current = guard.latest(sale)
            if current.seller_id != actor.id:
                raise PermissionDenied("Only the owning seller may amend a sale")
            if current.status is not SaleStatus.IN_PROGRESS:
                raise InvalidState(f"Sale {sale_id} is {current.status.value} and cannot be amended")

            data = normalize_customer_data(form)
            _raise_for_form(data)
            await self._store.update(sale_id, {"customer_data": data})
            logger.info("Sale amended", extra={"sale_id": sale_id, "seller_id": actor.id})
            return guard.remember(current.with_customer_data(data))

    async def delete_draft(self, actor: Actor, sale: Sale) -> None:
        """
        Hard-delete a draft. Only drafts are deletable, only by their seller.

        Raises:
            InvalidState: sale is not a draft (whoever asks)
            PermissionDenied: actor is not the owning seller
        """

        sale_id = self._require_persisted(sale)
        async with self._serialized(sale_id) as guard:
            current = guard.latest(sale)
            if not current.is_draft:
                raise InvalidState(f"Sale {sale_id} is {current.status.value}; only drafts can be deleted")
            if current.seller_id != actor.id:
                raise PermissionDenied("Only the owning seller may delete a draft")

            await self._store.delete(sale_id)
            guard.written = None
            logger.info("Draft deleted", extra={"sale_id": sale_id, "seller_id": actor.id})

    async def visible_sales(self, actor: Actor) -> List[Sale]:
        """Current sales visible to `actor`, newest first."""

        sale_filter = visibility_filter(self.registry, actor)
        sales = await self._store.list(sale_filter)
        return sorted(sales, key=lambda sale: sale.created_at, reverse=True)

    async def get(self, actor: Actor, sale_id: str) -> Sale:
        """Fetch one sale, hiding records outside the actor's visibility as NotFound."""

        sale_filter = visibility_filter(self.registry, actor)
        sale = await self._store.get(sale_id)
        if not sale_filter.matches(sale):
            raise NotFound(f"Sale not found: {sale_id}")
        return sale


def _raise_for_form(data: CustomerData) -> None:
    errors = validate_for_submission(data)
    if errors:
        raise ValidationError("Required fields are missing or invalid", errors)


__all__ = ["LifecycleEngine", "visibility_filter"]

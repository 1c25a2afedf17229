"""
Draft autosave coordinator.

One coordinator per open editing surface. Edits are debounced: only the most
recent `schedule_save` within the quiet window is written, every earlier
pending write is cancelled.

Rules:
- A form whose identity fields are all empty is never persisted.
- The first successful write of a form without an id adopts the store's id;
  every later save updates that same record. Adoption happens once.
- Writes are serialized, so an edit arriving while a create is in flight is
  saved as an update of the record that create produced.
- Transient store failures are retried silently after another quiet window
  unless a newer edit has been scheduled meanwhile.
- After `cancel()` no pending save fires; after `close()` nothing fires again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from domain.customer import has_identity
from domain.errors import StoreUnavailable, WorkflowError
from domain.notification import Notification, NotificationSink, Severity, discard
from domain.sale import Sale
from domain.user import Actor
from services.lifecycle_service import LifecycleEngine

logger = logging.getLogger(__name__)


class DraftAutosave:
    def __init__(
        self,
        engine: LifecycleEngine,
        actor: Actor,
        delay: float,
        sale_id: Optional[str] = None,
        notify: NotificationSink = discard,
    ):
        self._engine = engine
        self._actor = actor
        self._delay = delay
        self._sale_id = sale_id
        self._notify = notify
        self._pending: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()
        self._generation = 0
        self._closed = False
        self.last_saved: Optional[Sale] = None

    @property
    def sale_id(self) -> Optional[str]:
        return self._sale_id

    @property
    def closed(self) -> bool:
        return self._closed

    def schedule_save(self, form: Mapping[str, Any], existing_id: Optional[str] = None) -> None:
        """Debounce a save of `form`; replaces any save still waiting out its delay."""

        if self._closed:
            return
        if existing_id is not None and self._sale_id is None:
            self._sale_id = existing_id

        self._cancel_pending()
        self._generation += 1
        self._pending = asyncio.get_running_loop().create_task(
            self._save_later(dict(form), self._generation)
        )

    def cancel(self) -> None:
        """Drop every save not yet writing (a write already running still completes, without retry)."""

        self._generation += 1
        self._cancel_pending()

    def close(self) -> None:
        self._closed = True
        self._cancel_pending()

    async def wait_idle(self) -> None:
        """Wait until no save is pending or running."""

        while True:
            tasks = [t for t in (self._pending, self._inflight) if t is not None and not t.done()]
            if not tasks:
                return
            await asyncio.wait(tasks)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _save_later(self, form: dict, generation: int) -> None:
        await asyncio.sleep(self._delay)
        # The write itself is not cancellable: an interrupted create would lose the id.
        self._inflight = asyncio.ensure_future(self._write(form, generation))
        await asyncio.shield(self._inflight)

    async def _write(self, form: dict, generation: int) -> None:
        async with self._write_lock:
            if self._closed or generation != self._generation:
                return
            if not has_identity(form):
                logger.debug("Skipping autosave of empty draft", extra={"seller_id": self._actor.id})
                return

            try:
                draft = await self._engine.save_draft(self._actor, form, self._sale_id)
            except StoreUnavailable as e:
                logger.warning(
                    "Autosave failed, retrying on next tick",
                    extra={"sale_id": self._sale_id, "error": str(e)},
                )
                if generation == self._generation and not self._closed:
                    self.schedule_save(form)
                return
            except WorkflowError as e:
                logger.error("Autosave rejected", extra={"sale_id": self._sale_id, "error": str(e)})
                self._notify(Notification(str(e), e.severity))
                return
            except Exception:
                logger.exception("Autosave failed unexpectedly", extra={"sale_id": self._sale_id})
                self._notify(Notification("Draft could not be saved", Severity.WARNING))
                return

            if self._sale_id is None:
                self._sale_id = draft.id
            self.last_saved = draft


__all__ = ["DraftAutosave"]

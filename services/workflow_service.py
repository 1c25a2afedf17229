"""
Sales workflow facade for the presentation layer.

Wraps the lifecycle engine, permission service, user directory and dashboard
behind one object whose operations never raise a WorkflowError: each returns
an OperationResult carrying either the value or the typed failure, plus the
notification the UI should display.

Example:
    workflow = SalesWorkflow.in_memory()
    result = await workflow.change_status(manager, sale_id, SaleStatus.ANALYZED)
    if not result.success:
        show_toast(result.notification)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar

from domain.errors import WorkflowError
from domain.notification import Notification, NotificationSink, Severity, discard
from domain.roles import Permission, Role
from domain.sale import Sale, SaleStatus
from domain.user import Actor, AuthSession, User
from repositories.base import PermissionStore, SaleStore, UserStore
from services.autosave_service import DraftAutosave
from services.lifecycle_service import LifecycleEngine
from services.permission_service import PermissionService
from services.reporting_service import DashboardPoller, DashboardService, DashboardSummary
from services.settings import EngineSettings
from services.sync_service import SalesPoller, sales_poller_for
from services.user_service import UserService

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Result of a workflow operation.

    success: True if the operation completed
    value: the operation's return value (None on failure)
    error: the typed failure (None on success)
    notification: message for the actor, if any
    """

    success: bool
    value: Optional[T] = None
    error: Optional[WorkflowError] = None
    notification: Optional[Notification] = None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable


class SalesWorkflow:
    def __init__(
        self,
        sales: SaleStore,
        users: UserStore,
        permission_store: PermissionStore,
        settings: Optional[EngineSettings] = None,
        notify: NotificationSink = discard,
    ):
        self.settings = settings or EngineSettings()
        self._notify = notify
        self.permissions = PermissionService(permission_store, notify)
        self.engine = LifecycleEngine(sales, self.permissions)
        self.users = UserService(users, self.permissions, notify)
        self.dashboard = DashboardService(sales, self.permissions)

    @classmethod
    def in_memory(cls, settings: Optional[EngineSettings] = None, notify: NotificationSink = discard) -> "SalesWorkflow":
        from repositories.memory import InMemoryPermissionStore, InMemorySaleStore, InMemoryUserStore

        return cls(InMemorySaleStore(), InMemoryUserStore(), InMemoryPermissionStore(), settings, notify)

    @classmethod
    def supabase(cls, settings: Optional[EngineSettings] = None, notify: NotificationSink = discard) -> "SalesWorkflow":
        from repositories.permission_repository import SupabasePermissionStore
        from repositories.sale_repository import SupabaseSaleStore
        from repositories.user_repository import SupabaseUserStore

        return cls(SupabaseSaleStore(), SupabaseUserStore(), SupabasePermissionStore(), settings, notify)

    async def start(self) -> None:
        """Load the permission registry once for this session."""

        await self.permissions.load()

    async def _run(
        self,
        operation: Callable[[], Awaitable[T]],
        success_message: Optional[str] = None,
    ) -> OperationResult[T]:
        try:
            value = await operation()
        except WorkflowError as e:
            message = str(e)
            if e.retryable:
                message = f"{message}. Please try again."
            notification = Notification(message, e.severity)
            logger.info(
                "Workflow operation failed",
                extra={"error_type": type(e).__name__, "error": str(e), "retryable": e.retryable},
            )
            self._notify(notification)
            return OperationResult(success=False, error=e, notification=notification)

        notification = None
        if success_message is not None:
            notification = Notification(success_message, Severity.SUCCESS)
            self._notify(notification)
        return OperationResult(success=True, value=value, notification=notification)

    # ------------------------------------------------------------------
    # Sessions and users
    # ------------------------------------------------------------------

    async def register(self, name: str, email: str, role: Role = Role.SELLER) -> OperationResult[User]:
        return await self._run(
            lambda: self.users.register(name, email, role),
            "Registration received; an administrator must approve your account",
        )

    async def login(self, email: str) -> OperationResult[AuthSession]:
        return await self._run(lambda: self.users.authenticate(email))

    async def resolve_actor(self, user_id: str) -> OperationResult[Actor]:
        async def resolve() -> Actor:
            return (await self.users.resolve(user_id)).as_actor()

        return await self._run(resolve)

    async def list_users(self, actor: Actor) -> OperationResult[List[User]]:
        return await self._run(lambda: self.users.list(actor))

    async def confirm_user(self, actor: Actor, user_id: str) -> OperationResult[User]:
        return await self._run(lambda: self.users.confirm(actor, user_id), "User confirmed")

    async def change_user_role(self, actor: Actor, user_id: str, role: Role) -> OperationResult[User]:
        return await self._run(lambda: self.users.change_role(actor, user_id, role), "User role updated")

    async def delete_user(self, actor: Actor, user_id: str) -> OperationResult[None]:
        return await self._run(lambda: self.users.delete(actor, user_id))

    async def role_permissions(self, actor: Actor) -> OperationResult[Dict[str, List[str]]]:
        async def describe() -> Dict[str, List[str]]:
            return self.permissions.describe(actor)

        return await self._run(describe)

    async def update_role_permissions(
        self, actor: Actor, role: Role, permissions: Iterable[Permission]
    ) -> OperationResult[None]:
        return await self._run(lambda: self.permissions.update_role(actor, role, permissions))

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    async def visible_sales(self, actor: Actor) -> OperationResult[List[Sale]]:
        return await self._run(lambda: self.engine.visible_sales(actor))

    async def get_sale(self, actor: Actor, sale_id: str) -> OperationResult[Sale]:
        return await self._run(lambda: self.engine.get(actor, sale_id))

    async def change_status(
        self,
        actor: Actor,
        sale_id: str,
        target: SaleStatus,
        reason: Optional[str] = None,
        sale: Optional[Sale] = None,
    ) -> OperationResult[Sale]:
        """Apply a transition to `sale` (or to the stored record when not given)."""

        async def change() -> Sale:
            current = sale if sale is not None else await self.engine.get(actor, sale_id)
            return await self.engine.apply_transition(current, target, actor, reason)

        return await self._run(change, f"Sale #{sale_id} status updated to {SaleStatus(target).value}")

    async def save_draft(
        self, actor: Actor, form: Mapping[str, Any], sale_id: Optional[str] = None
    ) -> OperationResult[Sale]:
        return await self._run(lambda: self.engine.save_draft(actor, form, sale_id))

    async def submit(
        self,
        actor: Actor,
        form: Mapping[str, Any],
        sale_id: Optional[str] = None,
        autosave: Optional[DraftAutosave] = None,
    ) -> OperationResult[Sale]:
        """
        Submit a form for review.

        A pending autosave is cancelled first and a running one awaited, so the
        submission targets the draft's adopted identity instead of creating a
        second record.
        """

        async def submit() -> Sale:
            draft_id = sale_id
            if autosave is not None:
                autosave.cancel()
                await autosave.wait_idle()
                draft_id = draft_id or autosave.sale_id
                autosave.close()
            sale = await self.engine.get(actor, draft_id) if draft_id else None
            return await self.engine.submit(actor, form, sale)

        return await self._run(submit, "Sale submitted for review")

    async def amend(self, actor: Actor, sale_id: str, form: Mapping[str, Any]) -> OperationResult[Sale]:
        async def amend() -> Sale:
            sale = await self.engine.get(actor, sale_id)
            return await self.engine.amend(actor, sale, form)

        return await self._run(amend, "Sale corrected")

    async def delete_draft(self, actor: Actor, sale_id: str) -> OperationResult[None]:
        async def delete() -> None:
            sale = await self.engine.get(actor, sale_id)
            await self.engine.delete_draft(actor, sale)

        return await self._run(delete, "Draft deleted")

    async def dashboard_summary(self, actor: Actor) -> OperationResult[DashboardSummary]:
        return await self._run(lambda: self.dashboard.summary(actor))

    # ------------------------------------------------------------------
    # Background coordinators (one per open view)
    # ------------------------------------------------------------------

    def open_draft_editor(self, actor: Actor, sale_id: Optional[str] = None) -> DraftAutosave:
        return DraftAutosave(self.engine, actor, self.settings.autosave_delay, sale_id, self._notify)

    def open_sales_view(
        self, actor: Actor, on_refresh: Optional[Callable[[List[Sale]], None]] = None
    ) -> SalesPoller:
        return sales_poller_for(self.engine, actor, self.settings, self._notify, on_refresh)

    def open_dashboard_view(
        self, actor: Actor, on_refresh: Optional[Callable[[DashboardSummary], None]] = None
    ) -> DashboardPoller:
        return DashboardPoller(self.dashboard, actor, self.settings.dashboard_poll_interval, on_refresh)


__all__ = ["OperationResult", "SalesWorkflow"]

"""
Pytest configuration and shared fixtures.

This file adds the project root to the Python path so that tests can import
from the domain, repositories, services and api modules, and provides
in-memory stores with a fixed cast of users.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.errors import StoreUnavailable  # noqa: E402
from domain.notification import Notification  # noqa: E402
from domain.roles import Role  # noqa: E402
from domain.user import Actor, User  # noqa: E402
from repositories.base import SaleFilter  # noqa: E402
from repositories.memory import InMemoryPermissionStore, InMemorySaleStore, InMemoryUserStore  # noqa: E402
from services.permission_service import PermissionService  # noqa: E402
from services.lifecycle_service import LifecycleEngine  # noqa: E402
from services.settings import EngineSettings  # noqa: E402
from services.workflow_service import SalesWorkflow  # noqa: E402

CREATED = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class RecordingSaleStore(InMemorySaleStore):
    """
    InMemorySaleStore that counts writes and can fail on demand.

    `fail_next` makes the next N calls (of any kind) raise StoreUnavailable.
    """

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.creates = 0
        self.updates: List[Dict[str, Any]] = []
        self.deletes = 0
        self.fail_next = 0

    def _maybe_fail(self) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise StoreUnavailable("store unavailable")

    @property
    def writes(self) -> int:
        return self.creates + len(self.updates) + self.deletes

    async def create(self, sale):
        self._maybe_fail()
        self.creates += 1
        return await super().create(sale)

    async def get(self, sale_id):
        self._maybe_fail()
        return await super().get(sale_id)

    async def update(self, sale_id: str, fields: Mapping[str, Any]) -> None:
        self._maybe_fail()
        self.updates.append(dict(fields))
        await super().update(sale_id, fields)

    async def delete(self, sale_id):
        self._maybe_fail()
        self.deletes += 1
        await super().delete(sale_id)

    async def list(self, sale_filter: SaleFilter):
        self._maybe_fail()
        return await super().list(sale_filter)


def _user(actor: Actor, email: str, confirmed: bool = True) -> User:
    return User(
        id=actor.id,
        name=actor.name,
        email=email,
        role=actor.role,
        confirmed=confirmed,
        created_at=CREATED,
    )


@pytest.fixture
def seller() -> Actor:
    return Actor(id="seller-1", name="Ana Vendedora", role=Role.SELLER)


@pytest.fixture
def other_seller() -> Actor:
    return Actor(id="seller-2", name="Bruno Vendedor", role=Role.SELLER)


@pytest.fixture
def manager() -> Actor:
    return Actor(id="manager-1", name="Carlos Gerente", role=Role.MANAGER)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", name="Admin Principal", role=Role.ADMIN)


@pytest.fixture
def users(seller, other_seller, manager, admin) -> List[User]:
    return [
        _user(admin, "admin@nexus.com"),
        _user(manager, "gerente@nexus.com"),
        _user(seller, "vendedor@nexus.com"),
        _user(other_seller, "bruno@nexus.com"),
    ]


@pytest.fixture
def notifications() -> List[Notification]:
    return []


@pytest.fixture
def sale_store() -> RecordingSaleStore:
    return RecordingSaleStore()


@pytest.fixture
def permissions() -> PermissionService:
    return PermissionService(InMemoryPermissionStore())


@pytest.fixture
def engine(sale_store, permissions) -> LifecycleEngine:
    return LifecycleEngine(sale_store, permissions)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        autosave_delay=0.02,
        seller_poll_interval=0.05,
        manager_poll_interval=0.05,
        dashboard_poll_interval=0.05,
    )


@pytest.fixture
def workflow(sale_store, users, settings, notifications) -> SalesWorkflow:
    return SalesWorkflow(
        sale_store,
        InMemoryUserStore(users),
        InMemoryPermissionStore(),
        settings,
        notify=notifications.append,
    )


@pytest.fixture
def valid_form() -> Dict[str, Any]:
    return {
        "nome": "Ana Silva",
        "cpf": "529.982.247-25",
        "email": "ana.silva@example.com",
        "contato": "(11) 99999-0000",
        "plano": "500MB",
        "cep": "01001-000",
        "rua": "Praça da Sé",
        "numero": "100",
        "cidade": "São Paulo",
        "estado": "SP",
        "audio_url": "https://example.com/audio/venda-1.mp3",
    }

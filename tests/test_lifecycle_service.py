"""
Tests for `services/lifecycle_service.py`.

Covers contract rules:
- Every non-draft stored sale keeps history[-1].status == status.
- Rejected operations perform zero store writes and leave the record unchanged.
- A regression stores its reason; the next forward transition clears it.
- Operations on one sale are serialized within an engine; across engines the
  last write wins.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import RecordingSaleStore
from domain.errors import InvalidState, NotFound, PermissionDenied, StoreUnavailable, ValidationError
from domain.roles import Role
from domain.sale import SaleStatus
from domain.user import Actor
from repositories.memory import InMemoryPermissionStore
from services.lifecycle_service import LifecycleEngine
from services.permission_service import PermissionService


async def _submitted(engine, seller, form):
    return await engine.submit(seller, form)


@pytest.mark.asyncio
async def test_save_draft_creates_then_updates_same_record(engine, sale_store, seller) -> None:
    """Verify the first save adopts an id and later saves reuse it with a single DRAFT entry."""

    first = await engine.save_draft(seller, {"nome": "Ana Silva"})
    second = await engine.save_draft(seller, {"nome": "Ana Silva", "cpf": "529.982.247-25"}, first.id)

    assert first.id is not None
    assert second.id == first.id
    assert sale_store.creates == 1
    assert len(sale_store.updates) == 1

    stored = await sale_store.get(first.id)
    assert stored.status is SaleStatus.DRAFT
    assert [e.status for e in stored.status_history] == [SaleStatus.DRAFT]
    assert stored.customer_data["cpf"] == "529.982.247-25"


@pytest.mark.asyncio
async def test_save_draft_requires_identity(engine, sale_store, seller) -> None:
    with pytest.raises(ValidationError):
        await engine.save_draft(seller, {"nome": "  ", "cpf": ""})

    assert sale_store.writes == 0


@pytest.mark.asyncio
async def test_save_draft_rejects_other_sellers_draft(engine, seller, other_seller) -> None:
    draft = await engine.save_draft(seller, {"nome": "Ana Silva"})

    with pytest.raises(PermissionDenied):
        await engine.save_draft(other_seller, {"nome": "Hijack"}, draft.id)


@pytest.mark.asyncio
async def test_manager_cannot_save_drafts(engine, manager) -> None:
    with pytest.raises(PermissionDenied):
        await engine.save_draft(manager, {"nome": "Ana Silva"})


@pytest.mark.asyncio
async def test_submit_draft_appends_in_progress(engine, sale_store, seller, valid_form) -> None:
    draft = await engine.save_draft(seller, {"nome": "Ana Silva"})

    sale = await engine.submit(seller, valid_form, draft)

    assert sale.id == draft.id
    stored = await sale_store.get(draft.id)
    assert stored.status is SaleStatus.IN_PROGRESS
    assert [e.status for e in stored.status_history] == [SaleStatus.DRAFT, SaleStatus.IN_PROGRESS]
    assert stored.customer_data["email"] == valid_form["email"]
    assert sale_store.creates == 1


@pytest.mark.asyncio
async def test_submit_without_draft_creates_in_progress(engine, sale_store, seller, valid_form) -> None:
    sale = await engine.submit(seller, valid_form)

    stored = await sale_store.get(sale.id)
    assert stored.status is SaleStatus.IN_PROGRESS
    assert stored.status_history[-1].status is SaleStatus.IN_PROGRESS
    assert stored.seller_id == seller.id


@pytest.mark.asyncio
async def test_submit_invalid_form_writes_nothing(engine, sale_store, seller, valid_form) -> None:
    draft = await engine.save_draft(seller, {"nome": "Ana Silva"})
    writes_before = sale_store.writes

    with pytest.raises(ValidationError) as exc:
        await engine.submit(seller, dict(valid_form, email="broken"), draft)

    assert exc.value.errors == {"email": "Invalid e-mail format"}
    assert sale_store.writes == writes_before
    assert (await sale_store.get(draft.id)).status is SaleStatus.DRAFT


@pytest.mark.asyncio
async def test_full_review_with_regression(engine, sale_store, seller, manager, valid_form) -> None:
    """Verify a finished sale can be returned with a reason and re-approved."""

    sale = await _submitted(engine, seller, valid_form)
    sale = await engine.apply_transition(sale, SaleStatus.ANALYZED, manager)
    sale = await engine.apply_transition(sale, SaleStatus.FINISHED, manager)

    returned = await engine.apply_transition(sale, SaleStatus.IN_PROGRESS, manager, "documento ilegível")

    stored = await sale_store.get(sale.id)
    assert stored == returned
    assert stored.status is SaleStatus.IN_PROGRESS
    assert stored.return_reason == "documento ilegível"
    assert [e.status for e in stored.status_history] == [
        SaleStatus.IN_PROGRESS,
        SaleStatus.ANALYZED,
        SaleStatus.FINISHED,
        SaleStatus.IN_PROGRESS,
    ]
    assert stored.status_history[-1].reason == "documento ilegível"
    assert stored.status_history[-1].updated_by == manager.name
    assert stored.in_regression()

    reapproved = await engine.apply_transition(stored, SaleStatus.ANALYZED, manager)

    assert reapproved.return_reason is None
    assert (await sale_store.get(sale.id)).return_reason is None


@pytest.mark.asyncio
async def test_short_reason_leaves_sale_unchanged(engine, sale_store, seller, manager, valid_form) -> None:
    sale = await _submitted(engine, seller, valid_form)
    sale = await engine.apply_transition(sale, SaleStatus.ANALYZED, manager)
    before = await sale_store.get(sale.id)
    writes_before = sale_store.writes

    with pytest.raises(ValidationError):
        await engine.apply_transition(sale, SaleStatus.IN_PROGRESS, manager, " ok ")

    assert sale_store.writes == writes_before
    assert await sale_store.get(sale.id) == before


@pytest.mark.asyncio
async def test_seller_approval_is_denied_without_writes(engine, sale_store, seller, valid_form) -> None:
    """Verify a permission failure touches the store zero times."""

    sale = await _submitted(engine, seller, valid_form)
    writes_before = sale_store.writes

    with pytest.raises(PermissionDenied):
        await engine.apply_transition(sale, SaleStatus.ANALYZED, seller)

    assert sale_store.writes == writes_before
    assert (await sale_store.get(sale.id)).status is SaleStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_store_failure_propagates_and_retry_succeeds(engine, sale_store, seller, manager, valid_form) -> None:
    sale = await _submitted(engine, seller, valid_form)
    sale_store.fail_next = 1

    with pytest.raises(StoreUnavailable):
        await engine.apply_transition(sale, SaleStatus.ANALYZED, manager)

    assert (await sale_store.get(sale.id)).status is SaleStatus.IN_PROGRESS

    updated = await engine.apply_transition(sale, SaleStatus.ANALYZED, manager)
    assert updated.status is SaleStatus.ANALYZED


@pytest.mark.asyncio
async def test_amend_changes_data_only(engine, sale_store, seller, manager, valid_form) -> None:
    sale = await _submitted(engine, seller, valid_form)
    sale = await engine.apply_transition(sale, SaleStatus.ANALYZED, manager)
    returned = await engine.apply_transition(sale, SaleStatus.IN_PROGRESS, manager, "foto do RG cortada")

    amended = await engine.amend(seller, returned, dict(valid_form, foto_frente_url="https://example.com/rg.jpg"))

    assert amended.customer_data["foto_frente_url"] == "https://example.com/rg.jpg"
    assert amended.status_history == returned.status_history
    assert amended.return_reason == "foto do RG cortada"


@pytest.mark.asyncio
async def test_amend_rules(engine, seller, other_seller, manager, valid_form) -> None:
    sale = await _submitted(engine, seller, valid_form)

    with pytest.raises(PermissionDenied):
        await engine.amend(other_seller, sale, valid_form)

    analyzed = await engine.apply_transition(sale, SaleStatus.ANALYZED, manager)
    with pytest.raises(InvalidState):
        await engine.amend(seller, analyzed, valid_form)


@pytest.mark.asyncio
async def test_delete_draft(engine, sale_store, seller, other_seller) -> None:
    draft = await engine.save_draft(seller, {"nome": "Ana Silva"})

    with pytest.raises(PermissionDenied):
        await engine.delete_draft(other_seller, draft)

    await engine.delete_draft(seller, draft)

    with pytest.raises(NotFound):
        await sale_store.get(draft.id)


@pytest.mark.asyncio
async def test_non_draft_cannot_be_deleted(engine, sale_store, seller, valid_form) -> None:
    """Verify deleting a submitted sale fails for anyone, including its owner."""

    sale = await _submitted(engine, seller, valid_form)

    with pytest.raises(InvalidState):
        await engine.delete_draft(seller, sale)

    assert sale_store.deletes == 0
    assert (await sale_store.get(sale.id)).status is SaleStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_visibility(engine, seller, other_seller, manager, valid_form) -> None:
    """Verify sellers see their own sales (drafts included) and managers never see drafts."""

    own_draft = await engine.save_draft(seller, {"nome": "Rascunho"})
    own_sale = await _submitted(engine, seller, valid_form)
    other_sale = await _submitted(engine, other_seller, valid_form)

    seller_view = {s.id for s in await engine.visible_sales(seller)}
    manager_view = {s.id for s in await engine.visible_sales(manager)}

    assert seller_view == {own_draft.id, own_sale.id}
    assert manager_view == {own_sale.id, other_sale.id}

    with pytest.raises(NotFound):
        await engine.get(seller, other_sale.id)
    with pytest.raises(NotFound):
        await engine.get(manager, own_draft.id)


@pytest.mark.asyncio
async def test_same_engine_serializes_transitions(seller, manager, valid_form) -> None:
    """Verify a second transition waits for the first and plans against its result."""

    store = RecordingSaleStore(latency=0.01)
    engine = LifecycleEngine(store, PermissionService(InMemoryPermissionStore()))
    sale = await engine.submit(seller, valid_form)

    analyzed, finished = await asyncio.gather(
        engine.apply_transition(sale, SaleStatus.ANALYZED, manager),
        engine.apply_transition(sale, SaleStatus.FINISHED, manager),
    )

    assert analyzed.status is SaleStatus.ANALYZED
    assert finished.status is SaleStatus.FINISHED
    stored = await store.get(sale.id)
    assert [e.status for e in stored.status_history] == [
        SaleStatus.IN_PROGRESS,
        SaleStatus.ANALYZED,
        SaleStatus.FINISHED,
    ]


@pytest.mark.asyncio
async def test_lock_state_is_released_when_idle(seller, manager, valid_form) -> None:
    """Verify per-sale lock state exists only while operations run and is gone after a delete."""

    store = RecordingSaleStore(latency=0.01)
    engine = LifecycleEngine(store, PermissionService(InMemoryPermissionStore()))
    sale = await engine.submit(seller, valid_form)
    draft = await engine.save_draft(seller, {"nome": "Rascunho"})

    pending = asyncio.gather(
        engine.apply_transition(sale, SaleStatus.ANALYZED, manager),
        engine.apply_transition(sale, SaleStatus.FINISHED, manager),
    )
    await asyncio.sleep(0)
    during = engine.busy_sales
    await pending
    after_transitions = engine.busy_sales

    await engine.save_draft(seller, {"nome": "Rascunho 2"}, draft.id)
    await engine.delete_draft(seller, draft)

    assert during == 1
    assert after_transitions == 0
    assert engine.busy_sales == 0


@pytest.mark.asyncio
async def test_two_engines_last_write_wins(sale_store, seller, valid_form) -> None:
    """Verify concurrent sessions are not serialized: the later write replaces the earlier one."""

    first_manager = Actor(id="manager-1", name="Carlos Gerente", role=Role.MANAGER)
    second_manager = Actor(id="manager-2", name="Daniela Gerente", role=Role.MANAGER)
    first = LifecycleEngine(sale_store, PermissionService(InMemoryPermissionStore()))
    second = LifecycleEngine(sale_store, PermissionService(InMemoryPermissionStore()))

    sale = await first.submit(seller, valid_form)
    seen_by_first = await first.get(first_manager, sale.id)
    seen_by_second = await second.get(second_manager, sale.id)

    await first.apply_transition(seen_by_first, SaleStatus.ANALYZED, first_manager)
    await second.apply_transition(seen_by_second, SaleStatus.ANALYZED, second_manager)

    stored = await sale_store.get(sale.id)
    assert stored.status is SaleStatus.ANALYZED
    assert len(stored.status_history) == 2
    assert stored.status_history[-1].updated_by == second_manager.name

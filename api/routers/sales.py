"""
Sales API Endpoints.

Endpoints for the seller intake flow (drafts, submission, correction) and the
manager review flow (status changes), plus the dashboard summary.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import current_actor, get_workflow, unwrap
from api.models import (
    CustomerFormRequest,
    DashboardResponse,
    SaleListResponse,
    SaleResponse,
    TransitionRequest,
)
from domain.user import Actor
from services.workflow_service import SalesWorkflow

router = APIRouter()


@router.get(
    "/sales",
    response_model=SaleListResponse,
    summary="List Visible Sales",
    description="Sellers see their own sales (drafts included); reviewers see every submitted sale.",
)
async def list_sales(
    seller_id: Optional[str] = None,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    """
    List the sales visible to the caller, newest first.

    Reviewers may narrow the list to one seller with `?seller_id=...`.
    """
    sales = unwrap(await workflow.visible_sales(actor))
    if seller_id is not None:
        sales = [sale for sale in sales if sale.seller_id == seller_id]
    return SaleListResponse(
        items=[SaleResponse.from_domain(sale) for sale in sales],
        total_count=len(sales),
    )


@router.get("/sales/{sale_id}", response_model=SaleResponse, summary="Get Sale")
async def get_sale(
    sale_id: str,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    return SaleResponse.from_domain(unwrap(await workflow.get_sale(actor, sale_id)))


@router.put(
    "/drafts",
    response_model=SaleResponse,
    summary="Save Draft",
    description="Persist an unsubmitted form as a DRAFT. Reuse the returned id on later saves.",
)
async def save_draft(
    request: CustomerFormRequest,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    draft = unwrap(await workflow.save_draft(actor, request.customer_data, request.sale_id))
    return SaleResponse.from_domain(draft)


@router.post(
    "/sales",
    response_model=SaleResponse,
    status_code=201,
    summary="Submit Sale",
    description="Submit a form for review (DRAFT -> IN_PROGRESS).",
)
async def submit_sale(
    request: CustomerFormRequest,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    """
    Submit an intake form.

    **Validation:** name longer than 3 characters, valid CPF/CNPJ, valid
    e-mail, and plan, CEP, street, number and audio attachment present.
    Field errors come back as `422` with a `fields` mapping.
    """
    sale = unwrap(await workflow.submit(actor, request.customer_data, request.sale_id))
    return SaleResponse.from_domain(sale)


@router.patch(
    "/sales/{sale_id}",
    response_model=SaleResponse,
    summary="Correct Returned Sale",
)
async def amend_sale(
    sale_id: str,
    request: CustomerFormRequest,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    return SaleResponse.from_domain(unwrap(await workflow.amend(actor, sale_id, request.customer_data)))


@router.post(
    "/sales/{sale_id}/status",
    response_model=SaleResponse,
    summary="Change Sale Status",
)
async def change_status(
    sale_id: str,
    request: TransitionRequest,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    """
    Apply a lifecycle transition.

    **Allowed edges:** DRAFT -> IN_PROGRESS -> ANALYZED -> FINISHED, and the
    regression ANALYZED | FINISHED -> IN_PROGRESS, which requires a `reason`
    of at least 5 characters.

    **Example request (regression):**
    ```json
    {"status": "IN_PROGRESS", "reason": "documento ilegível"}
    ```
    """
    sale = unwrap(await workflow.change_status(actor, sale_id, request.status, request.reason))
    return SaleResponse.from_domain(sale)


@router.delete("/sales/{sale_id}", status_code=204, summary="Delete Draft")
async def delete_draft(
    sale_id: str,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    unwrap(await workflow.delete_draft(actor, sale_id))


@router.get("/dashboard", response_model=DashboardResponse, summary="Dashboard Summary")
async def dashboard(
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    return DashboardResponse.from_domain(unwrap(await workflow.dashboard_summary(actor)))

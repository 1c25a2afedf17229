"""
Auth API Endpoints.

Self-registration and e-mail login. Registered accounts stay unconfirmed
until an administrator approves them.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_workflow, unwrap
from api.models import LoginRequest, RegisterRequest, UserResponse
from services.workflow_service import SalesWorkflow

router = APIRouter()


@router.post(
    "/auth/register",
    response_model=UserResponse,
    status_code=201,
    summary="Register",
    description="Create an unconfirmed account. An administrator must confirm it before login."
)
async def register(request: RegisterRequest, workflow: SalesWorkflow = Depends(get_workflow)):
    user = unwrap(await workflow.register(request.name, request.email, request.role))
    return UserResponse.from_domain(user)


@router.post("/auth/login", response_model=UserResponse, summary="Login")
async def login(request: LoginRequest, workflow: SalesWorkflow = Depends(get_workflow)):
    """
    Authenticate by e-mail.

    Returns the user; send its `id` as the `X-User-Id` header on later calls.
    Unconfirmed accounts get `403`.
    """
    session = unwrap(await workflow.login(request.email))
    return UserResponse.from_domain(session.user)

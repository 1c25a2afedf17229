"""
Shared API dependencies.

- The SalesWorkflow lives on `app.state.workflow` (created at startup).
- Callers identify themselves with the `X-User-Id` header; only confirmed
  users resolve to an actor.
- Failed OperationResults are turned into HTTP errors by `unwrap`.

WARNING: the `X-User-Id` header is not authenticated. Any caller that knows a
confirmed user's id can act as that user. Put this API behind a gateway that
verifies identity (for example Supabase Auth JWTs) before exposing it.
"""

from typing import Dict, Type, TypeVar

from fastapi import Depends, Header, HTTPException, Request

from domain.errors import (
    InvalidState,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    StoreError,
    StoreUnavailable,
    ValidationError,
    WorkflowError,
)
from domain.user import Actor
from services.workflow_service import OperationResult, SalesWorkflow

T = TypeVar("T")

# Most specific first: StoreUnavailable is a StoreError.
_STATUS_CODES: Dict[Type[WorkflowError], int] = {
    PermissionDenied: 403,
    NotFound: 404,
    InvalidTransition: 409,
    InvalidState: 409,
    ValidationError: 422,
    StoreUnavailable: 503,
    StoreError: 502,
}


def status_code_for(error: WorkflowError) -> int:
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def unwrap(result: OperationResult[T]) -> T:
    """Return the result's value or raise the matching HTTPException."""

    if result.success:
        return result.value  # type: ignore[return-value]

    error = result.error
    if error is None:
        raise HTTPException(status_code=500, detail="Operation failed without an error")
    status_code = status_code_for(error)
    raise HTTPException(
        status_code=status_code,
        detail={
            "error": type(error).__name__,
            "detail": str(error),
            "status_code": status_code,
            "fields": getattr(error, "errors", {}),
            "retryable": error.retryable,
        },
    )


def get_workflow(request: Request) -> SalesWorkflow:
    return request.app.state.workflow


async def current_actor(
    x_user_id: str = Header(..., alias="X-User-Id"),
    workflow: SalesWorkflow = Depends(get_workflow),
) -> Actor:
    result = await workflow.resolve_actor(x_user_id)
    if not result.success and isinstance(result.error, NotFound):
        raise HTTPException(status_code=401, detail="Unknown user")
    return unwrap(result)

"""
Admin API Endpoints.

User approval, role management and the role -> permission configuration.
Every endpoint requires ACCESS_ADMIN_PANEL.
"""

from typing import List

from fastapi import APIRouter, Depends

from api.dependencies import current_actor, get_workflow, unwrap
from api.models import PermissionMapResponse, RoleChangeRequest, RolePermissionsRequest, UserResponse
from domain.roles import Role
from domain.user import Actor
from services.workflow_service import SalesWorkflow

router = APIRouter(prefix="/admin")


@router.get("/permissions", response_model=PermissionMapResponse, summary="Get Permission Map")
async def get_permissions(
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    return PermissionMapResponse(roles=unwrap(await workflow.role_permissions(actor)))


@router.put("/permissions/{role}", response_model=PermissionMapResponse, summary="Replace Role Permissions")
async def update_permissions(
    role: Role,
    request: RolePermissionsRequest,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    """
    Replace the permission set of one role.

    Other roles are untouched. The change applies to new requests immediately.
    """
    unwrap(await workflow.update_role_permissions(actor, role, request.permissions))
    return PermissionMapResponse(roles=unwrap(await workflow.role_permissions(actor)))


@router.get("/users", response_model=List[UserResponse], summary="List Users")
async def list_users(
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    return [UserResponse.from_domain(user) for user in unwrap(await workflow.list_users(actor))]


@router.post("/users/{user_id}/confirm", response_model=UserResponse, summary="Confirm User")
async def confirm_user(
    user_id: str,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    return UserResponse.from_domain(unwrap(await workflow.confirm_user(actor, user_id)))


@router.put("/users/{user_id}/role", response_model=UserResponse, summary="Change User Role")
async def change_role(
    user_id: str,
    request: RoleChangeRequest,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    return UserResponse.from_domain(unwrap(await workflow.change_user_role(actor, user_id, request.role)))


@router.delete("/users/{user_id}", status_code=204, summary="Delete User")
async def delete_user(
    user_id: str,
    actor: Actor = Depends(current_actor),
    workflow: SalesWorkflow = Depends(get_workflow),
):
    unwrap(await workflow.delete_user(actor, user_id))

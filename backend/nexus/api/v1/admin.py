"""Admin role endpoints"""
from typing import List

from fastapi import APIRouter, Depends, Path, Query

from nexus.api.deps import get_admin_role_service, get_current_user_id
from nexus.schemas.admin import AdminRoleResponse, GrantRoleRequest
from nexus.services.admin import AdminRoleService

router = APIRouter()


@router.get("/roles", response_model=List[AdminRoleResponse])
async def list_admin_roles(
    user_id: str = Query(..., alias="userId"),
    current_user_id: str = Depends(get_current_user_id),
    service: AdminRoleService = Depends(get_admin_role_service),
):
    """Active admin roles held by a user"""
    roles = await service.list_roles(current_user_id, user_id)
    return [AdminRoleResponse.model_validate(r) for r in roles]


@router.post("/roles", response_model=AdminRoleResponse, status_code=201)
async def grant_admin_role(
    request: GrantRoleRequest,
    current_user_id: str = Depends(get_current_user_id),
    service: AdminRoleService = Depends(get_admin_role_service),
):
    """Grant an admin role (super admin only)"""
    role = await service.grant_role(
        current_user_id,
        request.user_id,
        request.role_type.value,
        subsidiary_id=request.subsidiary_id,
        permissions=request.permissions,
        notes=request.notes,
    )
    return AdminRoleResponse.model_validate(role)


@router.post("/roles/{role_id}/revoke", response_model=AdminRoleResponse)
async def revoke_admin_role(
    role_id: str = Path(...),
    current_user_id: str = Depends(get_current_user_id),
    service: AdminRoleService = Depends(get_admin_role_service),
):
    """Revoke an admin role (super admin only)"""
    role = await service.revoke_role(current_user_id, role_id)
    return AdminRoleResponse.model_validate(role)

"""
Admin router - role and user permission administration.

Role mutations go through RoleService and user mutations through
UserPermissionService; both return results, which are turned into
AuthorizationError here with the reason code as the error code.
"""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from app.admin.dependencies import require_system_permission
from app.auth import catalog
from app.auth.ownership import build_context
from app.auth.rbac_contract import SystemPermission
from app.auth.resolver import Actor
from app.dependencies import (
    get_current_actor,
    get_permission_service,
    get_role_service,
    get_user_permission_service,
)
from app.errors import error_from_reason
from app.schemas.decision import AuthzCheckRequest, AuthzDecisionResponse
from app.schemas.permission import PermissionCatalogResponse, PermissionDescriptorResponse
from app.schemas.role import (
    RoleCreate,
    RoleDuplicate,
    RoleList,
    RolePermissionsReplace,
    RoleResponse,
)
from app.schemas.user import UserAccessResponse, UserPermissionsReplace, UserRoleAssign
from app.services.admin.permission_service import PermissionService
from app.services.admin.role_service import RoleError, RoleService
from app.services.admin.user_permission_service import UserPermissionService

router = APIRouter(
    prefix="/admin",
    tags=["admin-authz"],
)

require_role_management = require_system_permission(SystemPermission.ROLE_MANAGEMENT)


def _unwrap(result):
    if not result.ok:
        raise error_from_reason(result.reason, result.message, result.details)
    return result


@router.get("/permissions", response_model=PermissionCatalogResponse)
async def list_permissions(
    _: Actor = Depends(require_role_management),
) -> PermissionCatalogResponse:
    """Grouped permission catalog, SYSTEM group last."""
    groups = {
        group: [
            PermissionDescriptorResponse.model_validate(descriptor)
            for descriptor in descriptors
        ]
        for group, descriptors in catalog.grouped_by_resource().items()
    }
    return PermissionCatalogResponse(
        groups=groups,
        total=len(catalog.all_permissions()),
    )


@router.get("/roles", response_model=RoleList)
async def list_roles(
    actor: Actor = Depends(get_current_actor),
    role_service: RoleService = Depends(get_role_service),
) -> RoleList:
    roles = await role_service.list_roles(actor)
    if isinstance(roles, RoleError):
        _unwrap(roles)
    return RoleList(
        roles=[RoleResponse.model_validate(role) for role in roles],
        total=len(roles),
    )


@router.get("/roles/assignable", response_model=RoleList)
async def list_assignable_roles(
    actor: Actor = Depends(get_current_actor),
    role_service: RoleService = Depends(get_role_service),
) -> RoleList:
    roles = await role_service.assignable(actor)
    return RoleList(
        roles=[RoleResponse.model_validate(role) for role in roles],
        total=len(roles),
    )


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    actor: Actor = Depends(get_current_actor),
    role_service: RoleService = Depends(get_role_service),
) -> RoleResponse:
    result = _unwrap(
        await role_service.create(
            actor,
            payload.name,
            payload.description,
            payload.permissions,
            payload.is_system,
        )
    )
    return RoleResponse.model_validate(result.role)


@router.put("/roles/{role_id}/permissions", response_model=RoleResponse)
async def replace_role_permissions(
    role_id: UUID,
    payload: RolePermissionsReplace,
    actor: Actor = Depends(get_current_actor),
    role_service: RoleService = Depends(get_role_service),
) -> RoleResponse:
    result = _unwrap(
        await role_service.replace_permissions(actor, role_id, payload.permissions)
    )
    return RoleResponse.model_validate(result.role)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: UUID,
    actor: Actor = Depends(get_current_actor),
    role_service: RoleService = Depends(get_role_service),
) -> Response:
    _unwrap(await role_service.delete(actor, role_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/roles/{role_id}/duplicate",
    response_model=RoleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_role(
    role_id: UUID,
    payload: RoleDuplicate,
    actor: Actor = Depends(get_current_actor),
    role_service: RoleService = Depends(get_role_service),
) -> RoleResponse:
    result = _unwrap(await role_service.duplicate(actor, role_id, payload.name))
    return RoleResponse.model_validate(result.role)


@router.put("/users/{user_id}/permissions", response_model=UserAccessResponse)
async def replace_user_permissions(
    user_id: UUID,
    payload: UserPermissionsReplace,
    actor: Actor = Depends(get_current_actor),
    user_service: UserPermissionService = Depends(get_user_permission_service),
) -> UserAccessResponse:
    result = _unwrap(
        await user_service.replace_direct_permissions(actor, user_id, payload.permissions)
    )
    return UserAccessResponse.model_validate(result.user)


@router.put("/users/{user_id}/role", response_model=UserAccessResponse)
async def assign_user_role(
    user_id: UUID,
    payload: UserRoleAssign,
    actor: Actor = Depends(get_current_actor),
    user_service: UserPermissionService = Depends(get_user_permission_service),
) -> UserAccessResponse:
    result = _unwrap(await user_service.assign_role(actor, user_id, payload.role_id))
    return UserAccessResponse.model_validate(result.user)


@router.post("/authz/check", response_model=AuthzDecisionResponse)
async def check_permission(
    payload: AuthzCheckRequest,
    actor: Actor = Depends(get_current_actor),
    permission_service: PermissionService = Depends(get_permission_service),
) -> AuthzDecisionResponse:
    """Evaluate one permission for the current actor. Never raises on deny."""
    context = None
    if payload.resource_id is not None or payload.resource_owners:
        context = build_context(
            actor.id,
            payload.resource_id,
            payload.resource_owners,
            designated_owner=payload.designated_owner,
        )
    decision = permission_service.check(actor, payload.permission, context)
    return AuthzDecisionResponse(
        allowed=decision.allowed,
        reason=decision.reason.value,
        permission=decision.permission,
        message=decision.message,
    )

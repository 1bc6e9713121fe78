"""
Admin dependencies - permission-gated dependency injection.

SECURITY: every admin route resolves the acting subject once per request and
passes it through the resolver. Denials are audited by PermissionService and
surface as AuthorizationError (401/403).
"""
from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request

from app.auth.rbac_contract import SystemPermission
from app.auth.resolver import Actor
from app.dependencies import get_current_actor, get_permission_service
from app.services.admin.permission_service import PermissionService


def require_system_permission(permission: SystemPermission | str) -> Callable:
    """
    Enforce a permission check for an admin route.

    Args:
        permission: The required permission (usually a SYSTEM.* permission)

    Returns:
        Dependency function resolving to the authorized Actor
    """
    required = permission.value if isinstance(permission, SystemPermission) else permission

    async def dependency(
        request: Request,
        actor: Actor = Depends(get_current_actor),
        permission_service: PermissionService = Depends(get_permission_service),
    ) -> Actor:
        await permission_service.require_permission(
            actor,
            required,
            resource="admin",
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        return actor

    return dependency

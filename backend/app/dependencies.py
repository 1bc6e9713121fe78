import uuid
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .auth.resolver import Actor
from .crud.role import RoleRepository
from .crud.user import UserRepository
from .database import get_session
from .security.token_inspection import ExpiredTokenError, InvalidTokenError, validate_access_token
from .services.admin.permission_service import PermissionService
from .services.admin.role_service import RoleService
from .services.admin.user_permission_service import UserPermissionService
from .services.audit.audit_service import AuditService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_permission_service(db: AsyncSession = Depends(get_db)) -> PermissionService:
    return PermissionService(db)


def get_role_service(db: AsyncSession = Depends(get_db)) -> RoleService:
    return RoleService(RoleRepository(db), AuditService(db))


def get_user_permission_service(
    db: AsyncSession = Depends(get_db),
) -> UserPermissionService:
    return UserPermissionService(UserRepository(db), AuditService(db))


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> uuid.UUID:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )

    try:
        payload = validate_access_token(credentials.credentials)
    except ExpiredTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired"
        ) from None
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        ) from None

    try:
        return uuid.UUID(payload["sub"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        ) from None


async def get_current_actor(
    user_id: uuid.UUID = Depends(get_current_user_id),
    permission_service: PermissionService = Depends(get_permission_service),
) -> Actor:
    """Load the acting subject once per request."""
    actor = await permission_service.load_actor(user_id)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found"
        )
    return actor

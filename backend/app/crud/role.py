import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.ports.role import RoleData, RoleStorePort
from ..models.role import Role
from ..models.user import User


async def get_role_by_id(
    session: AsyncSession, role_id: uuid.UUID, *, for_update: bool = False
) -> Role | None:
    stmt = select(Role).where(Role.id == role_id)
    if for_update:
        stmt = stmt.with_for_update()

    result = await session.execute(stmt)
    return result.scalars().first()


async def get_role_by_name(session: AsyncSession, name: str) -> Role | None:
    result = await session.execute(select(Role).where(Role.name == name))
    return result.scalar_one_or_none()


async def list_roles(session: AsyncSession) -> list[Role]:
    result = await session.execute(select(Role).order_by(Role.name))
    return list(result.scalars().all())


async def create_role(
    session: AsyncSession,
    name: str,
    description: str | None,
    permissions: list[str],
    is_system: bool = False,
) -> Role:
    role = Role(
        name=name,
        description=description,
        permissions=list(permissions),
        is_system=is_system,
    )
    session.add(role)
    await session.flush()
    await session.refresh(role)
    return role


async def replace_role_permissions(
    session: AsyncSession, role: Role, permissions: list[str]
) -> Role:
    # JSON columns are not mutation-tracked; assign a new list
    role.permissions = list(permissions)
    await session.flush()
    await session.refresh(role)
    return role


async def count_role_users(session: AsyncSession, role_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(User).where(User.role_id == role_id)
    )
    return int(result.scalar_one())


async def delete_role(session: AsyncSession, role: Role) -> None:
    await session.delete(role)
    await session.flush()


class RoleRepository(RoleStorePort):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(
        self, role_id: uuid.UUID, *, for_update: bool = False
    ) -> RoleData | None:
        return await get_role_by_id(self._session, role_id, for_update=for_update)

    async def get_by_name(self, name: str) -> RoleData | None:
        return await get_role_by_name(self._session, name)

    async def list_all(self) -> list[RoleData]:
        return await list_roles(self._session)

    async def create(
        self,
        name: str,
        description: str | None,
        permissions: list[str],
        is_system: bool,
    ) -> RoleData:
        return await create_role(
            self._session, name, description, permissions, is_system
        )

    async def replace_permissions(
        self, role: RoleData, permissions: list[str]
    ) -> RoleData:
        return await replace_role_permissions(self._session, role, permissions)

    async def count_users(self, role_id: uuid.UUID) -> int:
        return await count_role_users(self._session, role_id)

    async def delete(self, role: RoleData) -> None:
        await delete_role(self._session, role)

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

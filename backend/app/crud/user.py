import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.resolver import Actor
from ..domain.ports.role import RoleData
from ..domain.ports.user import UserData, UserStorePort
from ..models.role import Role
from ..models.user import User


async def get_user_by_id(
    session: AsyncSession, user_id: uuid.UUID, *, for_update: bool = False
) -> User | None:
    stmt = select(User).where(User.id == user_id)
    if for_update:
        # Lock only the users row; the joined role row stays unlocked
        stmt = stmt.with_for_update(of=User)

    result = await session.execute(stmt)
    return result.unique().scalars().first()


def actor_from_user(user: UserData) -> Actor:
    """Snapshot a loaded user row into the immutable Actor the engine consumes."""
    role = user.role
    return Actor.build(
        user.id,
        role.name,
        role.permissions or (),
        user.permissions or (),
        role_is_system=role.is_system,
        role_id=role.id,
    )


async def replace_user_permissions(
    session: AsyncSession, user: User, permissions: list[str]
) -> User:
    user.permissions = list(permissions)
    await session.flush()
    await session.refresh(user)
    return user


async def assign_user_role(session: AsyncSession, user: User, role: Role) -> User:
    user.role_id = role.id
    user.role = role
    await session.flush()
    await session.refresh(user)
    return user


class UserRepository(UserStorePort):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(
        self, user_id: uuid.UUID, *, for_update: bool = False
    ) -> UserData | None:
        return await get_user_by_id(self._session, user_id, for_update=for_update)

    async def get_actor(self, user_id: uuid.UUID) -> Actor | None:
        user = await get_user_by_id(self._session, user_id)
        if user is None or not user.is_active:
            return None
        return actor_from_user(user)

    async def get_role(self, role_id: uuid.UUID) -> RoleData | None:
        return await self._session.get(Role, role_id)

    async def replace_permissions(
        self, user: UserData, permissions: list[str]
    ) -> UserData:
        return await replace_user_permissions(self._session, user, permissions)

    async def assign_role(self, user: UserData, role: RoleData) -> UserData:
        return await assign_user_role(self._session, user, role)

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

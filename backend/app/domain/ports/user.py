from __future__ import annotations

import uuid
from typing import Protocol

from ...auth.resolver import Actor
from .role import RoleData


class UserData(Protocol):
    id: uuid.UUID
    email: str
    role_id: uuid.UUID
    permissions: list[str]
    is_active: bool
    role: RoleData


class UserStorePort(Protocol):
    async def get_by_id(
        self, user_id: uuid.UUID, *, for_update: bool = False
    ) -> UserData | None:
        ...

    async def get_actor(self, user_id: uuid.UUID) -> Actor | None:
        ...

    async def get_role(self, role_id: uuid.UUID) -> RoleData | None:
        ...

    async def replace_permissions(
        self, user: UserData, permissions: list[str]
    ) -> UserData:
        ...

    async def assign_role(self, user: UserData, role: RoleData) -> UserData:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...

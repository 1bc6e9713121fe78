from __future__ import annotations

import uuid
from typing import Protocol


class RoleData(Protocol):
    id: uuid.UUID
    name: str
    description: str | None
    permissions: list[str]
    is_system: bool


class RoleStorePort(Protocol):
    async def get_by_id(
        self, role_id: uuid.UUID, *, for_update: bool = False
    ) -> RoleData | None:
        ...

    async def get_by_name(self, name: str) -> RoleData | None:
        ...

    async def list_all(self) -> list[RoleData]:
        ...

    async def create(
        self,
        name: str,
        description: str | None,
        permissions: list[str],
        is_system: bool,
    ) -> RoleData:
        ...

    async def replace_permissions(
        self, role: RoleData, permissions: list[str]
    ) -> RoleData:
        ...

    async def count_users(self, role_id: uuid.UUID) -> int:
        ...

    async def delete(self, role: RoleData) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...

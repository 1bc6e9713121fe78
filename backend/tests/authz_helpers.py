import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.auth.rbac_contract import DEFAULT_ROLE_PERMISSIONS
from app.auth.resolver import Actor


def make_actor(
    role_name: str = "Viewer",
    role_permissions: Sequence[str] | None = None,
    direct_permissions: Sequence[str] = (),
    *,
    actor_id: uuid.UUID | None = None,
    role_is_system: bool = False,
) -> Actor:
    if role_permissions is None:
        role_permissions = DEFAULT_ROLE_PERMISSIONS.get(role_name, ())
    return Actor.build(
        actor_id or uuid.uuid4(),
        role_name,
        role_permissions,
        direct_permissions,
        role_is_system=role_is_system,
    )


@dataclass
class FakeRole:
    name: str
    permissions: list[str] = field(default_factory=list)
    description: str | None = None
    is_system: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class FakeUser:
    role: FakeRole
    permissions: list[str] = field(default_factory=list)
    email: str = "user@example.org"
    is_active: bool = True
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def role_id(self) -> uuid.UUID:
        return self.role.id


class FakeRoleStore:
    def __init__(self, roles: Sequence[FakeRole] = (), user_counts: dict[uuid.UUID, int] | None = None):
        self.roles: dict[uuid.UUID, FakeRole] = {role.id: role for role in roles}
        self.user_counts = user_counts or {}
        self.locked: list[uuid.UUID] = []
        self.commits = 0
        self.rollbacks = 0

    async def get_by_id(self, role_id: uuid.UUID, *, for_update: bool = False) -> FakeRole | None:
        if for_update:
            self.locked.append(role_id)
        return self.roles.get(role_id)

    async def get_by_name(self, name: str) -> FakeRole | None:
        return next((role for role in self.roles.values() if role.name == name), None)

    async def list_all(self) -> list[FakeRole]:
        return sorted(self.roles.values(), key=lambda role: role.name)

    async def create(
        self,
        name: str,
        description: str | None,
        permissions: list[str],
        is_system: bool,
    ) -> FakeRole:
        role = FakeRole(name, list(permissions), description, is_system)
        self.roles[role.id] = role
        return role

    async def replace_permissions(self, role: FakeRole, permissions: list[str]) -> FakeRole:
        role.permissions = list(permissions)
        return role

    async def count_users(self, role_id: uuid.UUID) -> int:
        return self.user_counts.get(role_id, 0)

    async def delete(self, role: FakeRole) -> None:
        del self.roles[role.id]

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakeUserStore:
    def __init__(self, users: Sequence[FakeUser] = (), roles: Sequence[FakeRole] = ()):
        self.users: dict[uuid.UUID, FakeUser] = {user.id: user for user in users}
        self.roles: dict[uuid.UUID, FakeRole] = {role.id: role for role in roles}
        for user in users:
            self.roles.setdefault(user.role.id, user.role)
        self.locked: list[uuid.UUID] = []
        self.commits = 0
        self.rollbacks = 0

    async def get_by_id(self, user_id: uuid.UUID, *, for_update: bool = False) -> FakeUser | None:
        if for_update:
            self.locked.append(user_id)
        return self.users.get(user_id)

    async def get_actor(self, user_id: uuid.UUID) -> Actor | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        return make_actor(
            user.role.name,
            user.role.permissions,
            user.permissions,
            actor_id=user.id,
            role_is_system=user.role.is_system,
        )

    async def get_role(self, role_id: uuid.UUID) -> FakeRole | None:
        return self.roles.get(role_id)

    async def replace_permissions(self, user: FakeUser, permissions: list[str]) -> FakeUser:
        user.permissions = list(permissions)
        return user

    async def assign_role(self, user: FakeUser, role: FakeRole) -> FakeUser:
        user.role = role
        return user

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

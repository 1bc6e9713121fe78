import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class RoleCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)
    is_system: bool = False


class RolePermissionsReplace(BaseModel):
    permissions: list[str]


class RoleDuplicate(BaseModel):
    name: str = Field(..., max_length=100)


class RoleResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    permissions: list[str]
    is_system: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class RoleList(BaseModel):
    roles: list[RoleResponse]
    total: int

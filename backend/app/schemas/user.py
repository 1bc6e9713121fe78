import uuid

from pydantic import BaseModel


class UserPermissionsReplace(BaseModel):
    permissions: list[str]


class UserRoleAssign(BaseModel):
    role_id: uuid.UUID


class UserAccessResponse(BaseModel):
    id: uuid.UUID
    email: str
    role_id: uuid.UUID
    permissions: list[str]

    class Config:
        from_attributes = True

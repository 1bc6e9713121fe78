import uuid

from pydantic import BaseModel, Field


class AuthzCheckRequest(BaseModel):
    permission: str
    resource_id: str | None = None
    # Recorded owners of the target; several owners mean "no single owner"
    resource_owners: list[uuid.UUID] = Field(default_factory=list)
    designated_owner: uuid.UUID | None = None


class AuthzDecisionResponse(BaseModel):
    allowed: bool
    reason: str
    permission: str | None = None
    message: str

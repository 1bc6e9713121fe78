from pydantic import BaseModel


class PermissionDescriptorResponse(BaseModel):
    value: str
    label: str
    description: str
    group: str

    class Config:
        from_attributes = True


class PermissionCatalogResponse(BaseModel):
    groups: dict[str, list[PermissionDescriptorResponse]]
    total: int

"""
Permission grammar.

Exactly two shapes are valid:
- ``resource.OPERATION``: resource is a known lowercase ResourceKind and
  OPERATION is one of CREATE, READ, UPDATE, DELETE, ALL
- ``SYSTEM.NAME``: NAME is a known system permission name

Anything else is malformed. Malformed strings are never persisted and never
evaluate as granted.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .rbac_contract import (
    OPERATIONS,
    RESOURCE_KINDS,
    SYSTEM_NAMES,
    SYSTEM_SCOPE,
    Operation,
    ResourceKind,
)


class MalformedPermissionError(ValueError):
    """Raised when a permission string does not match the grammar."""

    def __init__(self, invalid: list[str]):
        self.invalid = invalid
        super().__init__(
            "Malformed permission string(s): " + ", ".join(repr(p) for p in invalid)
        )


@dataclass(frozen=True, slots=True)
class ParsedPermission:
    scope: str
    name: str

    @property
    def is_system(self) -> bool:
        return self.scope == SYSTEM_SCOPE

    @property
    def resource(self) -> ResourceKind | None:
        if self.is_system:
            return None
        return ResourceKind(self.scope)

    @property
    def operation(self) -> Operation | None:
        if self.is_system:
            return None
        return Operation(self.name)

    def __str__(self) -> str:
        return f"{self.scope}.{self.name}"


def validate(permission: object) -> bool:
    if not isinstance(permission, str) or not permission:
        return False

    parts = permission.split(".")
    if len(parts) != 2:
        return False

    scope, name = parts
    if scope == SYSTEM_SCOPE:
        return name in SYSTEM_NAMES
    return scope in RESOURCE_KINDS and name in OPERATIONS


def parse_permission(permission: str) -> ParsedPermission:
    if not validate(permission):
        raise MalformedPermissionError([str(permission)])
    scope, name = permission.split(".")
    return ParsedPermission(scope=scope, name=name)


def is_system_permission(permission: str) -> bool:
    return validate(permission) and permission.startswith(f"{SYSTEM_SCOPE}.")


def make_permission(kind: ResourceKind | str, operation: Operation | str) -> str:
    """Build a resource-scoped permission string, validating both halves."""
    kind_value = kind.value if isinstance(kind, ResourceKind) else kind
    operation_value = operation.value if isinstance(operation, Operation) else operation
    permission = f"{kind_value}.{operation_value}"
    if not validate(permission) or kind_value == SYSTEM_SCOPE:
        raise MalformedPermissionError([permission])
    return permission


def require_valid(permissions: Iterable[str]) -> list[str]:
    """Validate a batch of permission strings.

    Raises:
        MalformedPermissionError: naming every invalid entry
    """
    permissions = list(permissions)
    invalid = [str(p) for p in permissions if not validate(p)]
    if invalid:
        raise MalformedPermissionError(invalid)
    return permissions


def normalize_permissions(permissions: Iterable[str]) -> list[str]:
    """Validate and de-duplicate, keeping first-seen order."""
    return list(dict.fromkeys(require_valid(permissions)))

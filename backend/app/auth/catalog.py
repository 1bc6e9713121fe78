"""
Permission catalog.

Enumerates every valid permission string from the static ResourceKind and
Operation tables plus the fixed SYSTEM permissions, grouped for presentation.
No database or schema access happens here.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping

from .grammar import make_permission
from .rbac_contract import (
    RESOURCE_LABELS,
    SYSTEM_PERMISSION_LABELS,
    SYSTEM_SCOPE,
    Operation,
    ResourceKind,
    SystemPermission,
)

# Catalog order inside each resource group
OPERATION_ORDER: tuple[Operation, ...] = (
    Operation.CREATE,
    Operation.READ,
    Operation.UPDATE,
    Operation.DELETE,
    Operation.ALL,
)

_OPERATION_VERBS: dict[Operation, tuple[str, str]] = {
    Operation.CREATE: ("Create", "Create new"),
    Operation.READ: ("View", "View"),
    Operation.UPDATE: ("Edit", "Edit existing"),
    Operation.DELETE: ("Delete", "Delete"),
}


@dataclass(frozen=True, slots=True)
class PermissionDescriptor:
    value: str
    label: str
    description: str
    group: str


def _resource_descriptor(kind: ResourceKind, operation: Operation) -> PermissionDescriptor:
    singular, plural = RESOURCE_LABELS[kind]
    if operation is Operation.ALL:
        label = f"All {singular} Operations"
        description = f"Full access to {singular.lower()} management"
    else:
        verb, phrase = _OPERATION_VERBS[operation]
        label = f"{verb} {plural}"
        description = f"{phrase} {plural.lower()}"
    return PermissionDescriptor(
        value=make_permission(kind, operation),
        label=label,
        description=description,
        group=kind.value,
    )


def _system_descriptor(permission: SystemPermission) -> PermissionDescriptor:
    label, description = SYSTEM_PERMISSION_LABELS[permission]
    return PermissionDescriptor(
        value=permission.value,
        label=label,
        description=description,
        group=SYSTEM_SCOPE,
    )


@lru_cache(maxsize=1)
def _build_groups() -> Mapping[str, tuple[PermissionDescriptor, ...]]:
    groups: dict[str, tuple[PermissionDescriptor, ...]] = {}
    for kind in ResourceKind:
        groups[kind.value] = tuple(
            _resource_descriptor(kind, operation) for operation in OPERATION_ORDER
        )
    groups[SYSTEM_SCOPE] = tuple(
        _system_descriptor(permission) for permission in SystemPermission
    )
    return MappingProxyType(groups)


@lru_cache(maxsize=1)
def _build_index() -> Mapping[str, PermissionDescriptor]:
    return MappingProxyType({
        descriptor.value: descriptor
        for descriptors in _build_groups().values()
        for descriptor in descriptors
    })


def all_permissions() -> frozenset[str]:
    return frozenset(_build_index())


def grouped_by_resource() -> dict[str, list[PermissionDescriptor]]:
    """Descriptors grouped by resource kind, with SYSTEM as the last group.

    Returns a fresh dict so callers can mutate it freely.
    """
    return {group: list(descriptors) for group, descriptors in _build_groups().items()}


def describe(permission: str) -> PermissionDescriptor | None:
    return _build_index().get(permission)


def permissions_for(kind: ResourceKind | str) -> list[PermissionDescriptor]:
    key = kind.value if isinstance(kind, ResourceKind) else kind
    return list(_build_groups().get(key, ()))

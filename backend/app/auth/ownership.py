"""
Ownership resolution.

Decides whether the acting identity is the recorded sole owner of a target
resource. The resolver uses this for its ownership override path; the owner
identity itself is always supplied by the caller, never fetched here.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass

from .grammar import ParsedPermission
from .rbac_contract import OWNABLE_OPERATIONS, Operation

Identity = uuid.UUID | str


@dataclass(frozen=True, slots=True)
class ResourceContext:
    """Per-check resource context.

    ``resource_owner`` is None when the resource has no single owner
    (e.g. co-authored content). That is a distinct state from "owned by
    somebody else" and never triggers the ownership override.
    """
    user_id: Identity
    resource_id: Identity | None = None
    resource_owner: Identity | None = None

    def __post_init__(self) -> None:
        if self.user_id is None:
            raise ValueError("ResourceContext.user_id is required")

    @property
    def has_single_owner(self) -> bool:
        return self.resource_owner is not None


@dataclass(frozen=True, slots=True)
class OwnershipPolicy:
    """Which resource operations the ownership override may grant."""
    operations: frozenset[Operation] = OWNABLE_OPERATIONS

    def __post_init__(self) -> None:
        forbidden = set(self.operations) - set(OWNABLE_OPERATIONS)
        if forbidden:
            raise ValueError(
                "Ownership override can only cover UPDATE/DELETE, got: "
                + ", ".join(sorted(op.value for op in forbidden))
            )

    def covers(self, permission: ParsedPermission) -> bool:
        if permission.is_system:
            return False
        return permission.operation in self.operations


DEFAULT_OWNERSHIP_POLICY = OwnershipPolicy()


def _same_identity(left: Identity, right: Identity) -> bool:
    return str(left) == str(right)


def resolve_owner(
    recorded_owners: Iterable[Identity | None],
    *,
    designated_owner: Identity | None = None,
) -> Identity | None:
    """Collapse a resource's recorded owners into "the" owner for one check.

    A single recorded owner is the owner. Several recorded owners mean no
    single owner, unless the caller designates one of them explicitly.
    A designated identity that is not among the recorded owners is ignored.
    """
    owners = [owner for owner in recorded_owners if owner is not None]
    unique: list[Identity] = []
    for owner in owners:
        if not any(_same_identity(owner, seen) for seen in unique):
            unique.append(owner)

    if designated_owner is not None:
        for owner in unique:
            if _same_identity(owner, designated_owner):
                return owner
        return None

    if len(unique) == 1:
        return unique[0]
    return None


def build_context(
    user_id: Identity,
    resource_id: Identity | None = None,
    recorded_owners: Iterable[Identity | None] = (),
    *,
    designated_owner: Identity | None = None,
) -> ResourceContext:
    return ResourceContext(
        user_id=user_id,
        resource_id=resource_id,
        resource_owner=resolve_owner(recorded_owners, designated_owner=designated_owner),
    )


def is_owner(context: ResourceContext | None) -> bool:
    if context is None or context.resource_owner is None:
        return False
    return _same_identity(context.resource_owner, context.user_id)

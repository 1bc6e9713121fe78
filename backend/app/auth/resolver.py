"""
Permission resolver - the single authorization decision function.

Precedence (first match wins):
1. Malformed requested permission      -> deny  MALFORMED_PERMISSION
2. No actor                            -> deny  UNAUTHENTICATED
3. Actor is a system administrator     -> allow SYSTEM_BYPASS
4. Exact grant or {resource}.ALL       -> allow GRANTED
5. Sole owner, UPDATE/DELETE request   -> allow OWNER_OVERRIDE
6. Otherwise                           -> deny  INSUFFICIENT_PERMISSIONS

SECURITY: check() is pure. It performs no I/O, holds no shared state and is
safe to call concurrently. A deny is a returned value, never an exception;
only malformed calls (wrong argument types, a context for another identity)
raise.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from .grammar import parse_permission, validate
from .ownership import (
    DEFAULT_OWNERSHIP_POLICY,
    Identity,
    OwnershipPolicy,
    ResourceContext,
    is_owner,
)
from .rbac_contract import SUPER_ADMIN_ROLE, Operation, SystemPermission


class ReasonCode(str, Enum):
    """Enumerated decision reasons. Callers branch on these, not on text."""

    GRANTED = "GRANTED"
    SYSTEM_BYPASS = "SYSTEM_BYPASS"
    OWNER_OVERRIDE = "OWNER_OVERRIDE"
    MALFORMED_PERMISSION = "MALFORMED_PERMISSION"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    SYSTEM_ROLE_PROTECTED = "SYSTEM_ROLE_PROTECTED"
    ROLE_IN_USE = "ROLE_IN_USE"
    DUPLICATE_ROLE_NAME = "DUPLICATE_ROLE_NAME"
    ESCALATION_DENIED = "ESCALATION_DENIED"
    ROLE_NOT_FOUND = "ROLE_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_ROLE_NAME = "INVALID_ROLE_NAME"
    SELF_TARGET_FORBIDDEN = "SELF_TARGET_FORBIDDEN"
    HIERARCHY_VIOLATION = "HIERARCHY_VIOLATION"

    @property
    def message(self) -> str:
        return _REASON_MESSAGES[self]


_REASON_MESSAGES: dict[ReasonCode, str] = {
    ReasonCode.GRANTED: "Permission granted",
    ReasonCode.SYSTEM_BYPASS: "Granted by system administrator access",
    ReasonCode.OWNER_OVERRIDE: "Granted because you own this resource",
    ReasonCode.MALFORMED_PERMISSION: "The permission string is malformed",
    ReasonCode.UNAUTHENTICATED: "You are not authorized to perform this action",
    ReasonCode.INSUFFICIENT_PERMISSIONS: (
        "You do not have sufficient permissions for this operation"
    ),
    ReasonCode.SYSTEM_ROLE_PROTECTED: (
        "System roles can only be changed by system administrators"
    ),
    ReasonCode.ROLE_IN_USE: "The role is still assigned to users",
    ReasonCode.DUPLICATE_ROLE_NAME: "A role with this name already exists",
    ReasonCode.ESCALATION_DENIED: (
        "Only system administrators can grant system-level access"
    ),
    ReasonCode.ROLE_NOT_FOUND: "Role not found",
    ReasonCode.USER_NOT_FOUND: "User not found",
    ReasonCode.INVALID_ROLE_NAME: "Role name must be at least 2 characters",
    ReasonCode.SELF_TARGET_FORBIDDEN: (
        "Cannot manage your own account through this interface"
    ),
    ReasonCode.HIERARCHY_VIOLATION: (
        "You cannot manage a user with a higher role than your own"
    ),
}


@dataclass(frozen=True, slots=True)
class Decision:
    allowed: bool
    reason: ReasonCode
    permission: str | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.allowed


def allow(reason: ReasonCode, permission: str | None = None) -> Decision:
    return Decision(True, reason, permission, reason.message)


def deny(
    reason: ReasonCode,
    permission: str | None = None,
    message: str | None = None,
) -> Decision:
    return Decision(False, reason, permission, message or reason.message)


@dataclass(frozen=True, slots=True)
class RoleGrant:
    """The role an actor holds, as loaded for one request."""
    name: str
    permissions: frozenset[str] = field(default_factory=frozenset)
    is_system: bool = False
    id: uuid.UUID | None = None


@dataclass(frozen=True, slots=True)
class Actor:
    """An authenticated subject: identity, exactly one role, direct grants."""
    id: Identity
    role: RoleGrant
    direct_permissions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        id: Identity,
        role_name: str,
        role_permissions: Iterable[str] = (),
        direct_permissions: Iterable[str] = (),
        *,
        role_is_system: bool = False,
        role_id: uuid.UUID | None = None,
    ) -> "Actor":
        return cls(
            id=id,
            role=RoleGrant(
                name=role_name,
                permissions=frozenset(role_permissions),
                is_system=role_is_system,
                id=role_id,
            ),
            direct_permissions=frozenset(direct_permissions),
        )


def effective_permissions(actor: Actor | None) -> frozenset[str]:
    """Role grants united with direct grants. Malformed entries never count."""
    if actor is None:
        return frozenset()
    combined = actor.role.permissions | actor.direct_permissions
    return frozenset(p for p in combined if validate(p))


def is_super_admin_role(role_name: str | None) -> bool:
    return role_name == SUPER_ADMIN_ROLE


def is_system_admin(actor: Actor | None) -> bool:
    if actor is None:
        return False
    if is_super_admin_role(actor.role.name):
        return True
    return SystemPermission.ADMIN.value in effective_permissions(actor)


def _same_identity(left: Identity, right: Identity) -> bool:
    return str(left) == str(right)


def _insufficient(permission: str) -> Decision:
    parsed = parse_permission(permission)
    if parsed.is_system:
        text = f"System administrator privileges required ({permission})"
    else:
        text = f"{ReasonCode.INSUFFICIENT_PERMISSIONS.message} (missing {permission})"
    return deny(ReasonCode.INSUFFICIENT_PERMISSIONS, permission, text)


def check(
    actor: Actor | None,
    requested: str,
    context: ResourceContext | None = None,
    *,
    policy: OwnershipPolicy = DEFAULT_OWNERSHIP_POLICY,
) -> Decision:
    """Decide whether ``actor`` may exercise ``requested``.

    Args:
        actor: The authenticated subject (None when unauthenticated)
        requested: Permission string, ``resource.OPERATION`` or ``SYSTEM.NAME``
        context: Optional resource context for the ownership override
        policy: Operations the ownership override may grant

    Returns:
        Decision: allowed flag, reason code and display message

    Raises:
        TypeError: If ``requested`` is not a string or ``context`` has the wrong type
        ValueError: If ``context.user_id`` is not the actor's identity
    """
    if not isinstance(requested, str):
        raise TypeError(f"requested permission must be str, got {type(requested).__name__}")
    if context is not None and not isinstance(context, ResourceContext):
        raise TypeError(f"context must be ResourceContext, got {type(context).__name__}")

    if not validate(requested):
        return deny(ReasonCode.MALFORMED_PERMISSION, requested)

    if actor is None:
        return deny(ReasonCode.UNAUTHENTICATED, requested)

    if context is not None and not _same_identity(context.user_id, actor.id):
        raise ValueError("ResourceContext.user_id must be the acting identity")

    if is_system_admin(actor):
        return allow(ReasonCode.SYSTEM_BYPASS, requested)

    parsed = parse_permission(requested)
    granted = effective_permissions(actor)

    if requested in granted:
        return allow(ReasonCode.GRANTED, requested)
    if not parsed.is_system and f"{parsed.scope}.{Operation.ALL.value}" in granted:
        return allow(ReasonCode.GRANTED, requested)

    if policy.covers(parsed) and is_owner(context):
        return allow(ReasonCode.OWNER_OVERRIDE, requested)

    return _insufficient(requested)


def check_all(
    actor: Actor | None,
    requested: Iterable[str],
    context: ResourceContext | None = None,
    *,
    policy: OwnershipPolicy = DEFAULT_OWNERSHIP_POLICY,
) -> Decision:
    """Allow only if every permission is allowed; returns the first denial."""
    last = allow(ReasonCode.GRANTED)
    for permission in requested:
        decision = check(actor, permission, context, policy=policy)
        if not decision.allowed:
            return decision
        last = decision
    return last


def check_any(
    actor: Actor | None,
    requested: Iterable[str],
    context: ResourceContext | None = None,
    *,
    policy: OwnershipPolicy = DEFAULT_OWNERSHIP_POLICY,
) -> Decision:
    """Allow if at least one permission is allowed. An empty list denies."""
    requested = list(requested)
    first_denial: Decision | None = None
    for permission in requested:
        decision = check(actor, permission, context, policy=policy)
        if decision.allowed:
            return decision
        if first_denial is None:
            first_denial = decision
    if first_denial is None:
        return deny(ReasonCode.INSUFFICIENT_PERMISSIONS, None, "No permissions specified")
    if first_denial.reason is not ReasonCode.INSUFFICIENT_PERMISSIONS:
        return first_denial
    return deny(
        ReasonCode.INSUFFICIENT_PERMISSIONS,
        " OR ".join(requested),
        f"{ReasonCode.INSUFFICIENT_PERMISSIONS.message} (requires any of {', '.join(requested)})",
    )

"""
Role-assignment guard.

Restricts which roles an actor may grant, and which other actors it may
manage, edit or delete through the administrative path.

HARD INVARIANTS:
- Only system administrators may assign system roles or roles carrying any
  SYSTEM.* permission. No permission grant overrides this.
- A role ranked above the actor's own role is never assignable by it.
- Nobody targets themselves through the administrative path.
- A lower-ranked actor never targets a higher-ranked one, whatever
  permission strings it nominally holds.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from .grammar import is_system_permission
from .rbac_contract import ROLE_HIERARCHY, SystemPermission
from .resolver import (
    Actor,
    Decision,
    ReasonCode,
    allow,
    check,
    check_any,
    deny,
    is_super_admin_role,
    is_system_admin,
)


class AssignableRole(Protocol):
    name: str
    permissions: Sequence[str] | frozenset[str]
    is_system: bool


RoleT = TypeVar("RoleT", bound=AssignableRole)

ASSIGN_PERMISSION = SystemPermission.ROLE_MANAGEMENT.value
MANAGE_PERMISSIONS: tuple[str, ...] = (SystemPermission.USER_MANAGEMENT.value, "user.UPDATE")
DELETE_PERMISSIONS: tuple[str, ...] = (SystemPermission.USER_MANAGEMENT.value, "user.DELETE")


def role_rank(role_name: str | None) -> int:
    if role_name is None:
        return 0
    return ROLE_HIERARCHY.get(role_name, 0)


def _grants_system_admin(role: AssignableRole) -> bool:
    if is_super_admin_role(role.name):
        return True
    return SystemPermission.ADMIN.value in set(role.permissions or ())


def check_assign(actor: Actor | None, role: AssignableRole) -> Decision:
    if actor is None:
        return deny(ReasonCode.UNAUTHENTICATED)

    if is_system_admin(actor):
        return allow(ReasonCode.SYSTEM_BYPASS, ASSIGN_PERMISSION)

    decision = check(actor, ASSIGN_PERMISSION)
    if not decision.allowed:
        return decision

    if _grants_system_admin(role):
        return deny(
            ReasonCode.ESCALATION_DENIED,
            ASSIGN_PERMISSION,
            "Only system administrators can assign the super admin role",
        )

    if role.is_system:
        return deny(
            ReasonCode.ESCALATION_DENIED,
            ASSIGN_PERMISSION,
            "Only system administrators can assign system roles",
        )

    if any(is_system_permission(p) for p in role.permissions or ()):
        return deny(
            ReasonCode.ESCALATION_DENIED,
            ASSIGN_PERMISSION,
            "Only system administrators can assign roles with system permissions",
        )

    if role_rank(role.name) > role_rank(actor.role.name):
        return deny(
            ReasonCode.HIERARCHY_VIOLATION,
            ASSIGN_PERMISSION,
            "You cannot assign a role ranked above your own",
        )

    return decision


def can_assign(actor: Actor | None, role: AssignableRole) -> bool:
    return check_assign(actor, role).allowed


def assignable_roles(actor: Actor | None, roles: Iterable[RoleT]) -> list[RoleT]:
    return [role for role in roles if can_assign(actor, role)]


def _check_target(
    actor: Actor | None,
    target: Actor,
    required: tuple[str, ...],
) -> Decision:
    if actor is None:
        return deny(ReasonCode.UNAUTHENTICATED)

    if str(actor.id) == str(target.id):
        return deny(ReasonCode.SELF_TARGET_FORBIDDEN)

    if is_system_admin(actor):
        return allow(ReasonCode.SYSTEM_BYPASS)

    if is_system_admin(target):
        return deny(
            ReasonCode.HIERARCHY_VIOLATION,
            message="Only system administrators can manage system users",
        )

    if role_rank(target.role.name) > role_rank(actor.role.name):
        return deny(ReasonCode.HIERARCHY_VIOLATION)

    return check_any(actor, required)


def check_manage(actor: Actor | None, target: Actor) -> Decision:
    return _check_target(actor, target, MANAGE_PERMISSIONS)


def check_edit(actor: Actor | None, target: Actor) -> Decision:
    return _check_target(actor, target, MANAGE_PERMISSIONS)


def check_delete(actor: Actor | None, target: Actor) -> Decision:
    return _check_target(actor, target, DELETE_PERMISSIONS)


def can_manage(actor: Actor | None, target: Actor) -> bool:
    return check_manage(actor, target).allowed


def can_edit(actor: Actor | None, target: Actor) -> bool:
    return check_edit(actor, target).allowed


def can_delete(actor: Actor | None, target: Actor) -> bool:
    return check_delete(actor, target).allowed

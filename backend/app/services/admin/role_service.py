"""
Role store policy.

The only mutation surface for roles. Every operation is gated by
SYSTEM.ROLE_MANAGEMENT through the resolver and returns a RoleResult rather
than raising, so administrative callers can surface the reason verbatim.

SECURITY INVARIANTS:
- SYSTEM.* permissions are only granted by actors that hold SYSTEM.ADMIN
- System roles are only changed or deleted by actors that hold SYSTEM.ADMIN
- A role referenced by any user is never deleted
- Permission sets are replaced whole, under a row lock
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ...auth.assignment import assignable_roles
from ...auth.grammar import MalformedPermissionError, is_system_permission, normalize_permissions
from ...auth.rbac_contract import SystemPermission
from ...auth.resolver import Actor, ReasonCode, check, is_system_admin
from ...domain.ports.role import RoleData, RoleStorePort
from ..audit.audit_service import AuditService

logger = logging.getLogger("journal.roles")

MANAGE_PERMISSION = SystemPermission.ROLE_MANAGEMENT.value
MIN_ROLE_NAME_LENGTH = 2


@dataclass(frozen=True, slots=True)
class RoleOk:
    role: RoleData | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class RoleError:
    reason: ReasonCode
    message: str
    details: Any | None = None

    @property
    def ok(self) -> bool:
        return False


RoleResult = RoleOk | RoleError


def _error(reason: ReasonCode, message: str | None = None, details: Any | None = None) -> RoleError:
    return RoleError(reason, message or reason.message, details)


def role_snapshot(role: RoleData) -> dict[str, Any]:
    return {
        "id": str(role.id),
        "name": role.name,
        "description": role.description,
        "permissions": list(role.permissions or ()),
        "is_system": role.is_system,
    }


def _clean_name(name: str | None) -> str | None:
    if not isinstance(name, str):
        return None
    cleaned = name.strip()
    if len(cleaned) < MIN_ROLE_NAME_LENGTH:
        return None
    return cleaned


def _normalize(permissions: Iterable[str]) -> tuple[list[str], list[str]]:
    """Split into (ordered unique valid permissions, invalid entries)."""
    try:
        return normalize_permissions(permissions), []
    except MalformedPermissionError as exc:
        return [], exc.invalid


def _system_grants(permissions: Iterable[str]) -> list[str]:
    return [p for p in permissions if is_system_permission(p)]


class RoleService:
    def __init__(self, store: RoleStorePort, audit: AuditService | None = None):
        self.store = store
        self.audit = audit

    def _authorize(self, actor: Actor | None) -> RoleError | None:
        decision = check(actor, MANAGE_PERMISSION)
        if decision.allowed:
            return None
        logger.info(
            "role_denied reason=%s actor_id=%s",
            decision.reason.value,
            getattr(actor, "id", None),
        )
        return _error(decision.reason, decision.message)

    async def _refuse_escalation(
        self,
        actor: Actor,
        role_name: str | None,
        permissions: list[str],
        message: str | None = None,
    ) -> RoleError:
        logger.warning(
            "role_escalation_denied actor_id=%s role=%s permissions=%s",
            actor.id,
            role_name,
            ",".join(permissions),
        )
        if self.audit is not None:
            await self.audit.log_privilege_escalation_attempt(
                actor=actor,
                attempted_role=role_name,
                attempted_permissions=permissions,
                reason=ReasonCode.ESCALATION_DENIED.value,
            )
            await self.store.commit()
        return _error(ReasonCode.ESCALATION_DENIED, message, {"permissions": permissions})

    async def list_roles(self, actor: Actor | None) -> list[RoleData] | RoleError:
        denied = self._authorize(actor)
        if denied is not None:
            return denied
        return await self.store.list_all()

    async def assignable(self, actor: Actor | None) -> list[RoleData]:
        """Roles the actor may grant to another user. Empty when it may grant none."""
        return assignable_roles(actor, await self.store.list_all())

    async def create(
        self,
        actor: Actor | None,
        name: str,
        description: str | None = None,
        permissions: Iterable[str] = (),
        is_system: bool = False,
    ) -> RoleResult:
        """Create a role.

        Args:
            actor: The acting subject
            name: Role name, stripped; at least two characters
            description: Optional free text
            permissions: Permission strings for the new role
            is_system: Protect the role against non-admin edits

        Returns:
            RoleOk with the created role, or RoleError with the reason
        """
        denied = self._authorize(actor)
        if denied is not None:
            return denied

        cleaned = _clean_name(name)
        if cleaned is None:
            return _error(ReasonCode.INVALID_ROLE_NAME)
        if await self.store.get_by_name(cleaned) is not None:
            return _error(ReasonCode.DUPLICATE_ROLE_NAME, details={"name": cleaned})

        normalized, invalid = _normalize(permissions)
        if invalid:
            return _error(ReasonCode.MALFORMED_PERMISSION, details={"invalid": invalid})

        if not is_system_admin(actor):
            system_grants = _system_grants(normalized)
            if system_grants:
                return await self._refuse_escalation(actor, cleaned, system_grants)
            if is_system:
                return await self._refuse_escalation(
                    actor,
                    cleaned,
                    [],
                    "Only system administrators can create system roles",
                )

        try:
            role = await self.store.create(cleaned, description, normalized, is_system)
            if self.audit is not None:
                await self.audit.log_create("role", role.id, role_snapshot(role), actor=actor)
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        logger.info(
            "role_created role_id=%s name=%s actor_id=%s permissions=%d",
            role.id,
            role.name,
            actor.id,
            len(normalized),
        )
        return RoleOk(role)

    async def replace_permissions(
        self,
        actor: Actor | None,
        role_id: uuid.UUID,
        permissions: Iterable[str],
    ) -> RoleResult:
        """Replace a role's whole permission set under a row lock."""
        denied = self._authorize(actor)
        if denied is not None:
            return denied

        try:
            role = await self.store.get_by_id(role_id, for_update=True)
            if role is None:
                await self.store.rollback()
                return _error(ReasonCode.ROLE_NOT_FOUND)

            normalized, invalid = _normalize(permissions)
            if invalid:
                await self.store.rollback()
                return _error(ReasonCode.MALFORMED_PERMISSION, details={"invalid": invalid})

            if not is_system_admin(actor):
                system_grants = _system_grants(normalized)
                if system_grants:
                    await self.store.rollback()
                    return await self._refuse_escalation(actor, role.name, system_grants)
                if role.is_system:
                    await self.store.rollback()
                    return _error(ReasonCode.SYSTEM_ROLE_PROTECTED)

            before = role_snapshot(role)
            role = await self.store.replace_permissions(role, normalized)
            if self.audit is not None:
                await self.audit.log_update(
                    "role", role.id, before, role_snapshot(role), actor=actor
                )
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        logger.info(
            "role_permissions_replaced role_id=%s actor_id=%s permissions=%d",
            role.id,
            actor.id,
            len(normalized),
        )
        return RoleOk(role)

    async def delete(self, actor: Actor | None, role_id: uuid.UUID) -> RoleResult:
        """Delete a role that no user references.

        The in-use count and the delete run in one transaction with the role
        row locked. The users.role_id RESTRICT foreign key backs this up
        against an assignment committed in between.
        """
        denied = self._authorize(actor)
        if denied is not None:
            return denied

        try:
            role = await self.store.get_by_id(role_id, for_update=True)
            if role is None:
                await self.store.rollback()
                return _error(ReasonCode.ROLE_NOT_FOUND)

            if role.is_system and not is_system_admin(actor):
                await self.store.rollback()
                return _error(ReasonCode.SYSTEM_ROLE_PROTECTED)

            in_use = await self.store.count_users(role.id)
            if in_use > 0:
                await self.store.rollback()
                return _error(
                    ReasonCode.ROLE_IN_USE,
                    f"Cannot delete role: {in_use} user(s) are assigned to this role",
                    {"users": in_use},
                )

            before = role_snapshot(role)
            await self.store.delete(role)
            if self.audit is not None:
                await self.audit.log_delete("role", role.id, before, actor=actor)
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        logger.info("role_deleted role_id=%s name=%s actor_id=%s", role.id, role.name, actor.id)
        return RoleOk()

    async def duplicate(
        self,
        actor: Actor | None,
        role_id: uuid.UUID,
        new_name: str,
    ) -> RoleResult:
        """Copy a role's permission set into a new, never-system role."""
        denied = self._authorize(actor)
        if denied is not None:
            return denied

        source = await self.store.get_by_id(role_id)
        if source is None:
            return _error(ReasonCode.ROLE_NOT_FOUND)

        cleaned = _clean_name(new_name)
        if cleaned is None:
            return _error(ReasonCode.INVALID_ROLE_NAME)
        if await self.store.get_by_name(cleaned) is not None:
            return _error(ReasonCode.DUPLICATE_ROLE_NAME, details={"name": cleaned})

        # Stored sets are validated on write; re-check in case of legacy rows
        normalized, invalid = _normalize(source.permissions or ())
        if invalid:
            return _error(ReasonCode.MALFORMED_PERMISSION, details={"invalid": invalid})

        if not is_system_admin(actor):
            system_grants = _system_grants(normalized)
            if system_grants:
                return await self._refuse_escalation(actor, cleaned, system_grants)

        try:
            role = await self.store.create(
                cleaned,
                f"Copy of {source.name}",
                normalized,
                False,
            )
            if self.audit is not None:
                await self.audit.log(
                    action="role.duplicate",
                    entity_type="role",
                    entity_id=role.id,
                    actor=actor,
                    before={"source_role_id": str(source.id)},
                    after=role_snapshot(role),
                )
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        logger.info(
            "role_duplicated source_id=%s role_id=%s actor_id=%s",
            source.id,
            role.id,
            actor.id,
        )
        return RoleOk(role)

"""
User permission policy: direct grants and role assignment.

Both operations target another user through the administrative path, so the
assignment guard's self and hierarchy rules apply before anything is written.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ...auth.assignment import check_assign, check_manage
from ...auth.grammar import MalformedPermissionError, is_system_permission, normalize_permissions
from ...auth.rbac_contract import SystemPermission
from ...auth.resolver import Actor, ReasonCode, check, is_system_admin
from ...crud.user import actor_from_user
from ...domain.ports.user import UserData, UserStorePort
from ..audit.audit_service import AuditService

logger = logging.getLogger("journal.users")

MANAGE_PERMISSION = SystemPermission.USER_MANAGEMENT.value


@dataclass(frozen=True, slots=True)
class UserOk:
    user: UserData

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class UserError:
    reason: ReasonCode
    message: str
    details: Any | None = None

    @property
    def ok(self) -> bool:
        return False


UserResult = UserOk | UserError


def _error(reason: ReasonCode, message: str | None = None, details: Any | None = None) -> UserError:
    return UserError(reason, message or reason.message, details)


class UserPermissionService:
    def __init__(self, store: UserStorePort, audit: AuditService | None = None):
        self.store = store
        self.audit = audit

    async def _audit_escalation(
        self, actor: Actor, attempted_role: str | None, permissions: list[str]
    ) -> None:
        logger.warning(
            "user_escalation_denied actor_id=%s role=%s permissions=%s",
            actor.id,
            attempted_role,
            ",".join(permissions),
        )
        if self.audit is None:
            return
        await self.audit.log_privilege_escalation_attempt(
            actor=actor,
            attempted_role=attempted_role,
            attempted_permissions=permissions,
            reason=ReasonCode.ESCALATION_DENIED.value,
        )
        await self.store.commit()

    async def replace_direct_permissions(
        self,
        actor: Actor | None,
        user_id: uuid.UUID,
        permissions: Iterable[str],
    ) -> UserResult:
        """Replace a user's direct grants as one set.

        Args:
            actor: The acting subject
            user_id: The target user
            permissions: The complete new set of direct grants

        Returns:
            UserOk with the updated user, or UserError with the reason
        """
        decision = check(actor, MANAGE_PERMISSION)
        if not decision.allowed:
            return _error(decision.reason, decision.message)

        try:
            normalized = normalize_permissions(permissions)
        except MalformedPermissionError as exc:
            return _error(ReasonCode.MALFORMED_PERMISSION, details={"invalid": exc.invalid})

        try:
            user = await self.store.get_by_id(user_id, for_update=True)
            if user is None:
                await self.store.rollback()
                return _error(ReasonCode.USER_NOT_FOUND)

            target = actor_from_user(user)
            if not is_system_admin(actor):
                system_grants = [p for p in normalized if is_system_permission(p)]
                if system_grants:
                    await self.store.rollback()
                    await self._audit_escalation(actor, None, system_grants)
                    return _error(ReasonCode.ESCALATION_DENIED, details={"permissions": system_grants})
                if is_system_admin(target):
                    await self.store.rollback()
                    return _error(
                        ReasonCode.ESCALATION_DENIED,
                        "Only system administrators can modify system administrators",
                    )

            guard = check_manage(actor, target)
            if not guard.allowed:
                await self.store.rollback()
                return _error(guard.reason, guard.message)

            before = {"permissions": list(user.permissions or ())}
            user = await self.store.replace_permissions(user, normalized)
            if self.audit is not None:
                await self.audit.log_update(
                    "user_permissions",
                    user.id,
                    before,
                    {"permissions": normalized},
                    actor=actor,
                )
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        logger.info(
            "user_permissions_replaced user_id=%s actor_id=%s permissions=%d",
            user_id,
            actor.id,
            len(normalized),
        )
        return UserOk(user)

    async def assign_role(
        self,
        actor: Actor | None,
        user_id: uuid.UUID,
        role_id: uuid.UUID,
    ) -> UserResult:
        """Give a user a different role.

        Requires SYSTEM.USER_MANAGEMENT; the target must pass the manage guard
        and the role must pass the assignment guard.
        """
        decision = check(actor, MANAGE_PERMISSION)
        if not decision.allowed:
            return _error(decision.reason, decision.message)

        try:
            user = await self.store.get_by_id(user_id, for_update=True)
            if user is None:
                await self.store.rollback()
                return _error(ReasonCode.USER_NOT_FOUND)

            role = await self.store.get_role(role_id)
            if role is None:
                await self.store.rollback()
                return _error(ReasonCode.ROLE_NOT_FOUND)

            guard = check_manage(actor, actor_from_user(user))
            if not guard.allowed:
                await self.store.rollback()
                return _error(guard.reason, guard.message)

            assign = check_assign(actor, role)
            if not assign.allowed:
                await self.store.rollback()
                if assign.reason is ReasonCode.ESCALATION_DENIED:
                    await self._audit_escalation(
                        actor,
                        role.name,
                        [p for p in role.permissions or () if is_system_permission(p)],
                    )
                return _error(assign.reason, assign.message)

            before = {"role_id": str(user.role_id)}
            user = await self.store.assign_role(user, role)
            if self.audit is not None:
                await self.audit.log_update(
                    "user_role",
                    user.id,
                    before,
                    {"role_id": str(role.id), "role": role.name},
                    actor=actor,
                )
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

        logger.info(
            "user_role_assigned user_id=%s role=%s actor_id=%s",
            user_id,
            role.name,
            actor.id,
        )
        return UserOk(user)

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.resolver import Actor
from ...crud.audit_log import AuditLogRepository
from ...models.audit_log import ALLOWED_ACTOR_TYPES


class AuditService:
    """Service for recording audit events.

    SECURITY: actor_type is validated before every write so callers cannot
    record events under an arbitrary actor class.

    Rows are flushed into the caller's session. Commit is the caller's job.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit_repo = AuditLogRepository(session)

    def _validate_actor_type(self, actor_type: str) -> None:
        if actor_type not in ALLOWED_ACTOR_TYPES:
            raise ValueError(
                f"Invalid actor_type '{actor_type}'. "
                f"Must be one of: {', '.join(sorted(ALLOWED_ACTOR_TYPES))}"
            )

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: str | uuid.UUID,
        actor: Actor | None = None,
        actor_type: str = "user",
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ):
        """Log an audit event.

        Args:
            action: The action performed (e.g., 'role.create')
            entity_type: The type of entity (e.g., 'role')
            entity_id: The ID of the entity
            actor: The acting subject (None for system/anonymous)
            actor_type: Type of actor - 'user', 'system', or 'anonymous'
            before: State before the change
            after: State after the change
            reason: Reason code for the event, if any
            ip_address: IP address of the request
            user_agent: User agent of the request

        Raises:
            ValueError: If actor_type is invalid
        """
        self._validate_actor_type(actor_type)

        actor_id = _actor_uuid(actor)

        return await self.audit_repo.create(
            actor_id=actor_id,
            actor_type=actor_type,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            before=before,
            after=after,
            reason=reason,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def log_create(
        self,
        entity_type: str,
        entity_id: str | uuid.UUID,
        entity_data: dict[str, Any],
        actor: Actor | None = None,
        actor_type: str = "user",
        reason: str | None = None,
    ) -> None:
        """Log a create event."""
        await self.log(
            action=f"{entity_type}.create",
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            actor_type=actor_type,
            after=entity_data,
            reason=reason,
        )

    async def log_update(
        self,
        entity_type: str,
        entity_id: str | uuid.UUID,
        before_data: dict[str, Any],
        after_data: dict[str, Any],
        actor: Actor | None = None,
        actor_type: str = "user",
        reason: str | None = None,
    ) -> None:
        """Log an update event."""
        await self.log(
            action=f"{entity_type}.update",
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            actor_type=actor_type,
            before=before_data,
            after=after_data,
            reason=reason,
        )

    async def log_delete(
        self,
        entity_type: str,
        entity_id: str | uuid.UUID,
        entity_data: dict[str, Any],
        actor: Actor | None = None,
        actor_type: str = "user",
        reason: str | None = None,
    ) -> None:
        """Log a delete event."""
        await self.log(
            action=f"{entity_type}.delete",
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            actor_type=actor_type,
            before=entity_data,
            reason=reason,
        )

    async def log_permission_denied(
        self,
        permission: str | None,
        reason: str,
        actor: Actor | None = None,
        resource: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """
        Log a permission denial.

        Args:
            permission: The permission that was denied
            reason: The decision's reason code
            actor: The subject that was denied (None when unauthenticated)
            resource: Optional resource that was being accessed
            ip_address: IP address of the request
            user_agent: User agent of the request
        """
        await self.log(
            action="security.permission_denied",
            entity_type="permission",
            entity_id=permission or "unspecified",
            actor=actor,
            actor_type="user" if actor is not None else "anonymous",
            after={
                "permission": permission,
                "resource": resource,
            },
            reason=reason,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def log_privilege_escalation_attempt(
        self,
        actor: Actor | None = None,
        attempted_role: str | None = None,
        attempted_permissions: list[str] | None = None,
        reason: str | None = None,
    ) -> None:
        """
        Log a privilege escalation attempt.

        Args:
            actor: The subject that attempted escalation
            attempted_role: Role they tried to create, grant or assign
            attempted_permissions: System permissions they tried to grant
            reason: The refusal's reason code
        """
        await self.log(
            action="security.escalation_attempt",
            entity_type="security",
            entity_id="privilege_escalation",
            actor=actor,
            actor_type="user" if actor is not None else "anonymous",
            after={
                "attempted_role": attempted_role,
                "attempted_permissions": attempted_permissions,
            },
            reason=reason,
        )


def _actor_uuid(actor: Actor | None) -> uuid.UUID | None:
    if actor is None:
        return None
    if isinstance(actor.id, uuid.UUID):
        return actor.id
    try:
        return uuid.UUID(str(actor.id))
    except ValueError:
        return None

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.audit_log import AuditLog


class AuditLogRepository:
    """Writes audit rows into the caller's transaction.

    ``create`` only flushes; the owning unit of work decides when to commit so
    an audit row and the change it describes land together.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        actor_id: uuid.UUID | None,
        actor_type: str,
        action: str,
        entity_type: str,
        entity_id: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        audit_log = AuditLog(
            actor_id=actor_id,
            actor_type=actor_type,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            before=before,
            after=after,
            reason=reason,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.session.add(audit_log)
        await self.session.flush()
        return audit_log


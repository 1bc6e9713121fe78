import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.ownership import OwnershipPolicy, ResourceContext
from ...auth.rbac_contract import Operation
from ...auth.resolver import Actor, Decision, check, check_all, check_any
from ...config import settings
from ...crud.user import UserRepository
from ...database import AsyncSessionLocal
from ...errors import error_from_reason
from ..audit.audit_service import AuditService

logger = logging.getLogger("journal.authz")


def ownership_policy() -> OwnershipPolicy:
    """Build the ownership override policy from settings."""
    return OwnershipPolicy(
        frozenset(Operation(op) for op in settings.owner_override_operations)
    )


class PermissionService:
    """Request-scoped seam between HTTP handlers and the resolver.

    SECURITY: loads the Actor once per request and passes it explicitly;
    there is no ambient current-user state. Decisions come from
    ``app.auth.resolver.check`` only.
    """

    def __init__(self, session: AsyncSession, policy: OwnershipPolicy | None = None):
        self.session = session
        self.user_repo = UserRepository(session)
        self.policy = policy if policy is not None else ownership_policy()

    async def load_actor(self, user_id: uuid.UUID | None) -> Actor | None:
        """Load the acting subject (identity, role, direct grants).

        Returns None for a missing or inactive user, which the resolver
        treats as unauthenticated.
        """
        if user_id is None:
            return None
        return await self.user_repo.get_actor(user_id)

    def check(
        self,
        actor: Actor | None,
        permission: str,
        context: ResourceContext | None = None,
    ) -> Decision:
        decision = check(actor, permission, context, policy=self.policy)
        if not decision.allowed:
            logger.info(
                "authz_denied permission=%s reason=%s actor_id=%s",
                permission,
                decision.reason.value,
                getattr(actor, "id", None),
            )
        return decision

    def check_all(
        self,
        actor: Actor | None,
        permissions: list[str],
        context: ResourceContext | None = None,
    ) -> Decision:
        return check_all(actor, permissions, context, policy=self.policy)

    def check_any(
        self,
        actor: Actor | None,
        permissions: list[str],
        context: ResourceContext | None = None,
    ) -> Decision:
        return check_any(actor, permissions, context, policy=self.policy)

    async def require_permission(
        self,
        actor: Actor | None,
        permission: str,
        context: ResourceContext | None = None,
        *,
        resource: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Decision:
        """Raise if the actor may not exercise the permission.

        SECURITY: this is the enforcement point for permission checks. Every
        denial is written to the audit log in an ISOLATED session so the
        audit commit cannot leak into the request's transaction.

        Args:
            actor: The acting subject
            permission: The permission required
            context: Optional resource context for the ownership override
            resource: Optional resource label recorded with a denial
            ip_address: Client address recorded with a denial
            user_agent: Client user agent recorded with a denial

        Returns:
            Decision: the allowing decision

        Raises:
            AuthorizationError: 401/403 (400 for a malformed permission)
        """
        decision = self.check(actor, permission, context)
        if decision.allowed:
            return decision

        if settings.audit_permission_denials:
            await self._audit_denial(actor, decision, resource, ip_address, user_agent)

        raise error_from_reason(
            decision.reason,
            decision.message,
            {"permission": decision.permission},
        )

    async def _audit_denial(
        self,
        actor: Actor | None,
        decision: Decision,
        resource: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        try:
            async with AsyncSessionLocal() as audit_session:
                audit_service = AuditService(audit_session)
                await audit_service.log_permission_denied(
                    permission=decision.permission,
                    reason=decision.reason.value,
                    actor=actor,
                    resource=resource,
                    ip_address=ip_address,
                    user_agent=user_agent,
                )
                await audit_session.commit()
        except Exception:
            # Audit failure never changes the decision
            logger.exception(
                "authz_audit_failed permission=%s actor_id=%s",
                decision.permission,
                getattr(actor, "id", None),
            )

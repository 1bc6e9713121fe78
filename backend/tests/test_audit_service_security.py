"""
Tests for AuditService actor_type validation and security event records.
"""
import uuid
import pytest
from unittest.mock import AsyncMock, MagicMock

from app.crud.audit_log import AuditLogRepository
from app.models.audit_log import AuditLog
from app.services.audit.audit_service import AuditService
from tests.authz_helpers import make_actor


@pytest.fixture
def mock_session():
    """Create a mock AsyncSession."""
    return MagicMock()


@pytest.fixture
def audit_service(mock_session):
    """Create an AuditService with mocked session."""
    service = AuditService(mock_session)
    service.audit_repo = MagicMock()
    service.audit_repo.create = AsyncMock()
    return service


class TestAuditServiceActorTypeValidation:
    """Test actor_type validation in AuditService."""

    @pytest.mark.anyio
    @pytest.mark.parametrize("actor_type", ["user", "system", "anonymous"])
    async def test_log_accepts_known_actor_types(self, audit_service, actor_type):
        await audit_service.log(
            action="role.create",
            entity_type="role",
            entity_id="test-id",
            actor_type=actor_type,
        )
        audit_service.audit_repo.create.assert_awaited_once()

    @pytest.mark.anyio
    async def test_log_rejects_unknown_actor_type(self, audit_service):
        with pytest.raises(ValueError, match="Invalid actor_type"):
            await audit_service.log(
                action="role.create",
                entity_type="role",
                entity_id="test-id",
                actor_type="robot",
            )
        audit_service.audit_repo.create.assert_not_called()

    def test_model_rejects_unknown_actor_type(self):
        with pytest.raises(ValueError, match="Invalid actor_type"):
            AuditLog(
                actor_type="robot",
                action="role.create",
                entity_type="role",
                entity_id="x",
            )


class TestAuditServiceRecords:
    @pytest.mark.anyio
    async def test_log_records_actor_id(self, audit_service, editor):
        await audit_service.log_create("role", "role-1", {"name": "Reporters"}, actor=editor)

        call_kwargs = audit_service.audit_repo.create.call_args.kwargs
        assert call_kwargs["actor_id"] == editor.id
        assert call_kwargs["action"] == "role.create"
        assert call_kwargs["after"] == {"name": "Reporters"}
        assert call_kwargs["before"] is None

    @pytest.mark.anyio
    async def test_non_uuid_actor_id_recorded_as_null(self, audit_service):
        actor = make_actor("Editor", actor_id="legacy-17")
        await audit_service.log_update("role", "role-1", {"a": 1}, {"a": 2}, actor=actor)

        call_kwargs = audit_service.audit_repo.create.call_args.kwargs
        assert call_kwargs["actor_id"] is None
        assert call_kwargs["action"] == "role.update"

    @pytest.mark.anyio
    async def test_log_delete_keeps_before_state(self, audit_service, admin):
        role_id = uuid.uuid4()
        await audit_service.log_delete("role", role_id, {"name": "Reporters"}, actor=admin)

        call_kwargs = audit_service.audit_repo.create.call_args.kwargs
        assert call_kwargs["entity_id"] == str(role_id)
        assert call_kwargs["before"] == {"name": "Reporters"}
        assert call_kwargs["after"] is None

    @pytest.mark.anyio
    async def test_permission_denied_for_user(self, audit_service, editor):
        await audit_service.log_permission_denied(
            permission="SYSTEM.ROLE_MANAGEMENT",
            reason="INSUFFICIENT_PERMISSIONS",
            actor=editor,
            resource="admin",
            ip_address="10.0.0.1",
        )

        call_kwargs = audit_service.audit_repo.create.call_args.kwargs
        assert call_kwargs["action"] == "security.permission_denied"
        assert call_kwargs["actor_type"] == "user"
        assert call_kwargs["entity_id"] == "SYSTEM.ROLE_MANAGEMENT"
        assert call_kwargs["reason"] == "INSUFFICIENT_PERMISSIONS"
        assert call_kwargs["after"] == {"permission": "SYSTEM.ROLE_MANAGEMENT", "resource": "admin"}
        assert call_kwargs["ip_address"] == "10.0.0.1"

    @pytest.mark.anyio
    async def test_permission_denied_for_anonymous(self, audit_service):
        await audit_service.log_permission_denied(permission=None, reason="UNAUTHENTICATED")

        call_kwargs = audit_service.audit_repo.create.call_args.kwargs
        assert call_kwargs["actor_type"] == "anonymous"
        assert call_kwargs["actor_id"] is None
        assert call_kwargs["entity_id"] == "unspecified"

    @pytest.mark.anyio
    async def test_escalation_attempt(self, audit_service, admin):
        await audit_service.log_privilege_escalation_attempt(
            actor=admin,
            attempted_role="Super Admin",
            attempted_permissions=["SYSTEM.ADMIN"],
            reason="ESCALATION_DENIED",
        )

        call_kwargs = audit_service.audit_repo.create.call_args.kwargs
        assert call_kwargs["action"] == "security.escalation_attempt"
        assert call_kwargs["actor_id"] == admin.id
        assert call_kwargs["after"] == {
            "attempted_role": "Super Admin",
            "attempted_permissions": ["SYSTEM.ADMIN"],
        }
        assert call_kwargs["reason"] == "ESCALATION_DENIED"


class TestAuditLogRepository:
    @pytest.mark.anyio
    async def test_create_flushes_without_commit(self):
        session = MagicMock()
        session.flush = AsyncMock()
        session.commit = AsyncMock()

        row = await AuditLogRepository(session).create(
            actor_id=None,
            actor_type="system",
            action="role.create",
            entity_type="role",
            entity_id="x",
        )

        session.add.assert_called_once_with(row)
        session.flush.assert_awaited_once()
        session.commit.assert_not_awaited()

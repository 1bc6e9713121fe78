"""
Tests for UserPermissionService: direct grants and role assignment.
"""
import uuid
from unittest.mock import AsyncMock

import pytest

from app.auth.rbac_contract import DEFAULT_ROLE_PERMISSIONS, SUPER_ADMIN_ROLE
from app.auth.resolver import ReasonCode
from app.crud.user import actor_from_user
from app.services.admin.user_permission_service import (
    UserError,
    UserOk,
    UserPermissionService,
)
from app.services.audit.audit_service import AuditService
from tests.authz_helpers import FakeRole, FakeUser, FakeUserStore, make_actor


def _role(name: str, is_system: bool = True) -> FakeRole:
    return FakeRole(name, list(DEFAULT_ROLE_PERMISSIONS[name]), is_system=is_system)


@pytest.fixture
def roles():
    roles = {
        name: _role(name)
        for name in (SUPER_ADMIN_ROLE, "Admin", "Editor", "Author", "Viewer")
    }
    roles["Copy Desk"] = FakeRole("Copy Desk", ["article.READ", "article.UPDATE"])
    roles["Desk Managers"] = FakeRole("Desk Managers", ["SYSTEM.USER_MANAGEMENT", "user.ALL"])
    return roles


@pytest.fixture
def viewer_user(roles):
    return FakeUser(roles["Viewer"], email="viewer@example.org")


@pytest.fixture
def root_user(roles):
    return FakeUser(roles[SUPER_ADMIN_ROLE], email="root@example.org")


@pytest.fixture
def admin_user(roles):
    return FakeUser(roles["Admin"], email="admin@example.org")


@pytest.fixture
def store(roles, viewer_user, root_user, admin_user):
    return FakeUserStore([viewer_user, root_user, admin_user], list(roles.values()))


@pytest.fixture
def audit():
    return AsyncMock(spec=AuditService)


@pytest.fixture
def service(store, audit):
    return UserPermissionService(store, audit)


class TestReplaceDirectPermissions:
    @pytest.mark.anyio
    async def test_admin_replaces_lower_user_grants(self, service, store, audit, admin, viewer_user):
        result = await service.replace_direct_permissions(
            admin, viewer_user.id, ["article.UPDATE", "media.READ", "article.UPDATE"]
        )
        assert isinstance(result, UserOk)
        assert viewer_user.permissions == ["article.UPDATE", "media.READ"]
        assert store.locked == [viewer_user.id]
        assert store.commits == 1
        audit.log_update.assert_awaited_once()

    @pytest.mark.anyio
    async def test_empty_set_clears_grants(self, service, admin, viewer_user):
        viewer_user.permissions = ["article.UPDATE"]
        result = await service.replace_direct_permissions(admin, viewer_user.id, [])
        assert result.ok
        assert viewer_user.permissions == []

    @pytest.mark.anyio
    async def test_requires_user_management(self, service, store, editor, viewer_user):
        result = await service.replace_direct_permissions(editor, viewer_user.id, ["article.READ"])
        assert isinstance(result, UserError)
        assert result.reason is ReasonCode.INSUFFICIENT_PERMISSIONS
        assert store.locked == []

    @pytest.mark.anyio
    async def test_malformed_rejected_before_lookup(self, service, store, admin, viewer_user):
        result = await service.replace_direct_permissions(admin, viewer_user.id, ["article.read"])
        assert result.reason is ReasonCode.MALFORMED_PERMISSION
        assert result.details == {"invalid": ["article.read"]}
        assert store.locked == []

    @pytest.mark.anyio
    async def test_unknown_user(self, service, admin):
        result = await service.replace_direct_permissions(admin, uuid.uuid4(), [])
        assert result.reason is ReasonCode.USER_NOT_FOUND

    @pytest.mark.anyio
    async def test_system_grant_is_escalation(self, service, store, audit, admin, viewer_user):
        result = await service.replace_direct_permissions(admin, viewer_user.id, ["SYSTEM.ADMIN"])
        assert result.reason is ReasonCode.ESCALATION_DENIED
        assert viewer_user.permissions == []
        audit.log_privilege_escalation_attempt.assert_awaited_once()
        # The escalation audit row is committed on its own
        assert store.rollbacks == 1
        assert store.commits == 1

    @pytest.mark.anyio
    async def test_non_admin_cannot_touch_system_admin(self, service, admin, root_user):
        result = await service.replace_direct_permissions(admin, root_user.id, ["article.READ"])
        assert result.reason is ReasonCode.ESCALATION_DENIED
        assert result.message == "Only system administrators can modify system administrators"

    @pytest.mark.anyio
    async def test_self_target_forbidden(self, service, store, admin_user):
        actor = actor_from_user(admin_user)
        result = await service.replace_direct_permissions(actor, admin_user.id, ["article.READ"])
        assert result.reason is ReasonCode.SELF_TARGET_FORBIDDEN
        assert store.commits == 0

    @pytest.mark.anyio
    async def test_system_admin_may_grant_system(self, service, super_admin, viewer_user):
        result = await service.replace_direct_permissions(
            super_admin, viewer_user.id, ["SYSTEM.ANALYTICS"]
        )
        assert result.ok
        assert viewer_user.permissions == ["SYSTEM.ANALYTICS"]

    @pytest.mark.anyio
    async def test_store_failure_rolls_back(self, service, store, admin, viewer_user):
        store.replace_permissions = AsyncMock(side_effect=RuntimeError("db down"))
        with pytest.raises(RuntimeError):
            await service.replace_direct_permissions(admin, viewer_user.id, ["article.READ"])
        assert store.rollbacks == 1
        assert store.commits == 0


class TestAssignRole:
    @pytest.mark.anyio
    async def test_admin_assigns_custom_role(self, service, store, audit, roles, admin, viewer_user):
        result = await service.assign_role(admin, viewer_user.id, roles["Copy Desk"].id)
        assert result.ok
        assert viewer_user.role is roles["Copy Desk"]
        assert store.locked == [viewer_user.id]
        audit.log_update.assert_awaited_once()

    @pytest.mark.anyio
    async def test_unauthenticated(self, service, roles, viewer_user):
        result = await service.assign_role(None, viewer_user.id, roles["Editor"].id)
        assert result.reason is ReasonCode.UNAUTHENTICATED

    @pytest.mark.anyio
    async def test_unknown_user(self, service, roles, admin):
        result = await service.assign_role(admin, uuid.uuid4(), roles["Editor"].id)
        assert result.reason is ReasonCode.USER_NOT_FOUND

    @pytest.mark.anyio
    async def test_unknown_role(self, service, store, admin, viewer_user):
        result = await service.assign_role(admin, viewer_user.id, uuid.uuid4())
        assert result.reason is ReasonCode.ROLE_NOT_FOUND
        assert store.rollbacks == 1

    @pytest.mark.anyio
    async def test_admin_cannot_assign_super_admin(self, service, audit, roles, admin, viewer_user):
        result = await service.assign_role(admin, viewer_user.id, roles[SUPER_ADMIN_ROLE].id)
        assert result.reason is ReasonCode.ESCALATION_DENIED
        assert viewer_user.role is roles["Viewer"]
        audit.log_privilege_escalation_attempt.assert_awaited_once()

    @pytest.mark.anyio
    async def test_super_admin_assigns_super_admin(self, service, roles, super_admin, viewer_user):
        result = await service.assign_role(super_admin, viewer_user.id, roles[SUPER_ADMIN_ROLE].id)
        assert result.ok
        assert viewer_user.role is roles[SUPER_ADMIN_ROLE]

    @pytest.mark.anyio
    async def test_cannot_manage_system_admin(self, service, roles, admin, root_user):
        result = await service.assign_role(admin, root_user.id, roles["Viewer"].id)
        assert result.reason is ReasonCode.HIERARCHY_VIOLATION
        assert root_user.role is roles[SUPER_ADMIN_ROLE]

    @pytest.mark.anyio
    async def test_user_manager_without_role_management(self, service, roles, viewer_user):
        manager = make_actor("Admin", ["SYSTEM.USER_MANAGEMENT"])
        result = await service.assign_role(manager, viewer_user.id, roles["Author"].id)
        assert result.reason is ReasonCode.INSUFFICIENT_PERMISSIONS
        assert viewer_user.role is roles["Viewer"]

    @pytest.mark.anyio
    async def test_admin_cannot_assign_system_role(self, service, store, roles, admin, viewer_user):
        result = await service.assign_role(admin, viewer_user.id, roles["Editor"].id)
        assert result.reason is ReasonCode.ESCALATION_DENIED
        assert viewer_user.role is roles["Viewer"]
        assert store.rollbacks == 1

    @pytest.mark.anyio
    async def test_role_with_system_permissions_is_escalation(self, service, audit, roles, admin, viewer_user):
        result = await service.assign_role(admin, viewer_user.id, roles["Desk Managers"].id)
        assert result.reason is ReasonCode.ESCALATION_DENIED
        assert viewer_user.role is roles["Viewer"]
        call_kwargs = audit.log_privilege_escalation_attempt.call_args.kwargs
        assert call_kwargs["attempted_role"] == "Desk Managers"
        assert call_kwargs["attempted_permissions"] == ["SYSTEM.USER_MANAGEMENT"]

    @pytest.mark.anyio
    async def test_role_manager_without_user_management(self, service, store, roles, viewer_user):
        helpdesk = make_actor("Helpdesk", ["SYSTEM.ROLE_MANAGEMENT", "user.UPDATE"])
        result = await service.assign_role(helpdesk, viewer_user.id, roles["Copy Desk"].id)
        assert result.reason is ReasonCode.INSUFFICIENT_PERMISSIONS
        assert store.locked == []
        assert viewer_user.role is roles["Viewer"]

    @pytest.mark.anyio
    async def test_custom_manager_cannot_hand_out_seeded_admin(self, service, store, roles):
        intern_role = FakeRole("Intern", ["article.READ"])
        intern = FakeUser(intern_role, email="intern@example.org")
        store.users[intern.id] = intern
        store.roles[intern_role.id] = intern_role
        helpdesk = make_actor(
            "Helpdesk", ["SYSTEM.ROLE_MANAGEMENT", "SYSTEM.USER_MANAGEMENT", "user.UPDATE"]
        )

        result = await service.assign_role(helpdesk, intern.id, roles["Admin"].id)

        assert result.reason is ReasonCode.ESCALATION_DENIED
        assert intern.role is intern_role
        target = actor_from_user(intern)
        assert "SYSTEM.USER_MANAGEMENT" not in target.role.permissions

    @pytest.mark.anyio
    async def test_role_ranked_above_actor_is_hierarchy_violation(self, service, store, viewer_user, roles):
        senior = FakeRole("Editor", ["article.ALL"])
        store.roles[senior.id] = senior
        author = make_actor("Author", ["SYSTEM.ROLE_MANAGEMENT", "SYSTEM.USER_MANAGEMENT"])

        result = await service.assign_role(author, viewer_user.id, senior.id)

        assert result.reason is ReasonCode.HIERARCHY_VIOLATION
        assert viewer_user.role is roles["Viewer"]

"""
RBAC Security Contract - closed vocabulary for the authorization engine.

This module is the single source of truth for:
- Manageable resource kinds (static table, never introspected from a schema)
- Resource operations (CREATE, READ, UPDATE, DELETE, ALL)
- System-level permissions (SYSTEM.*)
- The role hierarchy used by the role-assignment guard
- Default role seeds

Adding a resource kind is a deliberate edit to ResourceKind below; the
catalog, grammar and seeds all derive from it.

ALL changes to this contract must go through security review.
"""
from __future__ import annotations

from enum import Enum
from typing import Final


# ============================================================================
# RESOURCE KINDS - STATIC TABLE
# ============================================================================

class ResourceKind(str, Enum):
    """Manageable resource types. Values are the permission-string prefixes."""

    ARTICLE = "article"
    AUTHOR = "author"
    ROLE = "role"
    USER = "user"
    MEDIA = "media"
    NOTIFICATION = "notification"
    JOURNAL_ISSUE = "journalissue"
    CALL_FOR_PAPERS = "callforpapers"
    EDITORIAL_BOARD_MEMBER = "editorialboardmember"
    BOARD_ADVISOR = "boardadvisor"
    CATEGORY = "category"


# Human labels (singular, plural) used by the catalog
RESOURCE_LABELS: Final[dict[ResourceKind, tuple[str, str]]] = {
    ResourceKind.ARTICLE: ("Article", "Articles"),
    ResourceKind.AUTHOR: ("Author", "Authors"),
    ResourceKind.ROLE: ("Role", "Roles"),
    ResourceKind.USER: ("User", "Users"),
    ResourceKind.MEDIA: ("Media", "Media Files"),
    ResourceKind.NOTIFICATION: ("Notification", "Notifications"),
    ResourceKind.JOURNAL_ISSUE: ("Journal Issue", "Journal Issues"),
    ResourceKind.CALL_FOR_PAPERS: ("Call for Papers", "Calls for Papers"),
    ResourceKind.EDITORIAL_BOARD_MEMBER: ("Editorial Board Member", "Editorial Board Members"),
    ResourceKind.BOARD_ADVISOR: ("Board Advisor", "Board Advisors"),
    ResourceKind.CATEGORY: ("Category", "Categories"),
}

RESOURCE_KINDS: Final[frozenset[str]] = frozenset(kind.value for kind in ResourceKind)


# ============================================================================
# OPERATIONS
# ============================================================================

class Operation(str, Enum):
    """Resource operations. ALL subsumes the other four for one resource."""

    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "ALL"


OPERATIONS: Final[frozenset[str]] = frozenset(op.value for op in Operation)

# Operations an actor may receive on a resource they solely own
OWNABLE_OPERATIONS: Final[frozenset[Operation]] = frozenset({
    Operation.UPDATE,
    Operation.DELETE,
})


# ============================================================================
# SYSTEM PERMISSIONS
# ============================================================================

SYSTEM_SCOPE: Final[str] = "SYSTEM"


class SystemPermission(str, Enum):
    """
    System-level permissions.

    SECURITY INVARIANT: SYSTEM.ADMIN subsumes every other permission and can
    only be granted by an actor that already holds it.
    """
    ADMIN = "SYSTEM.ADMIN"
    USER_MANAGEMENT = "SYSTEM.USER_MANAGEMENT"
    ROLE_MANAGEMENT = "SYSTEM.ROLE_MANAGEMENT"
    SETTINGS = "SYSTEM.SETTINGS"
    ANALYTICS = "SYSTEM.ANALYTICS"
    BACKUP = "SYSTEM.BACKUP"

    @property
    def short_name(self) -> str:
        return self.value.split(".", 1)[1]


SYSTEM_NAMES: Final[frozenset[str]] = frozenset(p.short_name for p in SystemPermission)
SYSTEM_PERMISSIONS: Final[frozenset[str]] = frozenset(p.value for p in SystemPermission)

SYSTEM_PERMISSION_LABELS: Final[dict[SystemPermission, tuple[str, str]]] = {
    SystemPermission.ADMIN: (
        "System Administrator",
        "Full system access (bypasses all other permissions)",
    ),
    SystemPermission.USER_MANAGEMENT: (
        "User Management",
        "Manage users and their permissions",
    ),
    SystemPermission.ROLE_MANAGEMENT: (
        "Role Management",
        "Create and manage roles and permissions",
    ),
    SystemPermission.SETTINGS: (
        "System Settings",
        "Change site-wide configuration",
    ),
    SystemPermission.ANALYTICS: (
        "Analytics",
        "View usage and download statistics",
    ),
    SystemPermission.BACKUP: (
        "Backup & Restore",
        "Create and restore content backups",
    ),
}


# ============================================================================
# ROLES
# ============================================================================

SUPER_ADMIN_ROLE: Final[str] = "Super Admin"

# Total order used by the role-assignment guard only (not by the resolver).
# Roles absent from this table rank 0.
ROLE_HIERARCHY: Final[dict[str, int]] = {
    "Viewer": 1,
    "Author": 2,
    "Editor": 3,
    "Admin": 4,
    SUPER_ADMIN_ROLE: 5,
}


# ============================================================================
# DEFAULT ROLE SEEDS (for seeding only)
# ============================================================================

# Runtime checks MUST go through app.auth.resolver, NOT these mappings.
DEFAULT_ROLE_PERMISSIONS: Final[dict[str, tuple[str, ...]]] = {
    SUPER_ADMIN_ROLE: (
        SystemPermission.ADMIN.value,
    ),
    "Admin": (
        SystemPermission.USER_MANAGEMENT.value,
        SystemPermission.ROLE_MANAGEMENT.value,
        "article.ALL",
        "author.ALL",
        "journalissue.ALL",
        "callforpapers.ALL",
        "notification.ALL",
        "media.ALL",
        "category.ALL",
        "editorialboardmember.ALL",
        "boardadvisor.ALL",
    ),
    "Editor": (
        "article.ALL",
        "author.READ",
        "author.CREATE",
        "journalissue.READ",
        "notification.CREATE",
        "notification.READ",
        "notification.UPDATE",
        "media.ALL",
        "category.READ",
    ),
    "Author": (
        "article.CREATE",
        "article.READ",
        "author.READ",
        "media.CREATE",
        "media.READ",
    ),
    "Reviewer": (
        "article.READ",
        "author.READ",
        "journalissue.READ",
    ),
    "Viewer": (
        "article.READ",
        "author.READ",
        "journalissue.READ",
        "notification.READ",
    ),
}

DEFAULT_ROLE_DESCRIPTIONS: Final[dict[str, str]] = {
    SUPER_ADMIN_ROLE: "Full system access with all permissions",
    "Admin": "Manages users, roles and all journal content",
    "Editor": "Edits articles, media and notifications",
    "Author": "Submits articles and uploads media",
    "Reviewer": "Reads submissions for review",
    "Viewer": "Read-only access to published content",
}


def _is_contract_permission(permission: str) -> bool:
    if permission in SYSTEM_PERMISSIONS:
        return True
    parts = permission.split(".")
    return len(parts) == 2 and parts[0] in RESOURCE_KINDS and parts[1] in OPERATIONS


def _validate_contract() -> None:
    """Validate the contract tables at module import time."""
    errors = []

    for kind in ResourceKind:
        if kind not in RESOURCE_LABELS:
            errors.append(f"Resource kind without labels: {kind.value}")
        if not kind.value.isalpha() or not kind.value.islower():
            errors.append(f"Resource kind must be a lowercase word: {kind.value}")

    for permission in SystemPermission:
        if permission not in SYSTEM_PERMISSION_LABELS:
            errors.append(f"System permission without labels: {permission.value}")

    for role, permissions in DEFAULT_ROLE_PERMISSIONS.items():
        if role not in DEFAULT_ROLE_DESCRIPTIONS:
            errors.append(f"Default role without description: {role}")
        for permission in permissions:
            if not _is_contract_permission(permission):
                errors.append(f"Role '{role}' has invalid permission: {permission}")

    # SECURITY: only the super admin seed may carry SYSTEM.ADMIN
    for role, permissions in DEFAULT_ROLE_PERMISSIONS.items():
        if role != SUPER_ADMIN_ROLE and SystemPermission.ADMIN.value in permissions:
            errors.append(f"SECURITY VIOLATION: Role '{role}' seeds SYSTEM.ADMIN")

    if errors:
        raise RuntimeError(
            "RBAC Contract validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )


# Run validation on import
_validate_contract()

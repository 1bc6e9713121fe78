from .base import Base
from .role import Role
from .user import User
from .audit_log import AuditLog

__all__ = [
    "Base",
    "Role",
    "User",
    "AuditLog",
]

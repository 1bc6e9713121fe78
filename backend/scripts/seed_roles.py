"""
Seed the default journal roles.

Roles and their permission sets come from rbac_contract.DEFAULT_ROLE_PERMISSIONS.
Every seeded role is a system role. Existing roles are left untouched so the
script can be re-run safely.

Usage:
    python -m scripts.seed_roles
"""
import asyncio
import logging
import os
import sys

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.auth import rbac_contract  # noqa: E402
from app.auth.grammar import normalize_permissions  # noqa: E402
from app.crud.role import RoleRepository  # noqa: E402
from app.database import AsyncSessionLocal  # noqa: E402
from app.services.audit.audit_service import AuditService  # noqa: E402

logger = logging.getLogger("journal.seed")


async def seed_roles() -> list[str]:
    """Create any missing default role. Returns the names that were created."""
    created: list[str] = []
    async with AsyncSessionLocal() as session:
        role_repo = RoleRepository(session)
        audit_service = AuditService(session)
        try:
            for name, permissions in rbac_contract.DEFAULT_ROLE_PERMISSIONS.items():
                if await role_repo.get_by_name(name) is not None:
                    logger.info("seed_skip role=%s reason=exists", name)
                    continue
                role = await role_repo.create(
                    name,
                    rbac_contract.DEFAULT_ROLE_DESCRIPTIONS[name],
                    normalize_permissions(permissions),
                    True,
                )
                await audit_service.log_create(
                    "role",
                    role.id,
                    {"name": role.name, "permissions": list(role.permissions)},
                    actor_type="system",
                    reason="seed",
                )
                created.append(name)
                logger.info("seed_created role=%s permissions=%d", name, len(role.permissions))
            await role_repo.commit()
        except Exception:
            await role_repo.rollback()
            raise
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    asyncio.run(seed_roles())

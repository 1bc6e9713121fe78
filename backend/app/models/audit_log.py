import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, JSON, DateTime, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, validates

from .base import Base

ALLOWED_ACTOR_TYPES = frozenset({"user", "system", "anonymous"})


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    actor_type: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )  # 'user' for admins, 'system' for seed scripts, 'anonymous' for denied guests
    action: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )  # e.g. 'role.create', 'security.permission_denied'
    entity_type: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True
    )  # e.g. 'role', 'user', 'permission'
    entity_id: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True
    )
    before: Mapped[dict | None] = mapped_column(JSON)
    after: Mapped[dict | None] = mapped_column(JSON)
    reason: Mapped[str | None] = mapped_column(Text)  # reason code for denials
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "actor_type IN ('user', 'system', 'anonymous')",
            name="valid_actor_type"
        ),
    )

    @validates("actor_type")
    def validate_actor_type(self, key: str, value: str) -> str:
        if value not in ALLOWED_ACTOR_TYPES:
            raise ValueError(
                f"Invalid actor_type '{value}'. "
                f"Must be one of: {', '.join(sorted(ALLOWED_ACTOR_TYPES))}"
            )
        return value

import json
import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .auth.rbac_contract import OWNABLE_OPERATIONS


load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean value")


def _parse_list(name: str, raw: str) -> list[str]:
    # Support both CSV format and JSON array format
    raw = raw.strip()
    if raw.startswith("["):
        try:
            parsed_list = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{name} JSON is malformed: {exc}") from exc
        if not isinstance(parsed_list, list):
            raise ValueError(f"{name} JSON must be an array")
        return [
            item.strip() for item in parsed_list if isinstance(item, str) and item.strip()
        ]
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    app_name: str = Field(default="Journal CMS Backend")
    debug: bool = Field(default=False)
    database_url: str = Field(default="")
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)
    secret_key: str | None = Field(default=None)
    algorithm: str = Field(default="HS256")
    owner_override_operations: list[str] = Field(
        default_factory=lambda: ["UPDATE", "DELETE"]
    )
    audit_permission_denials: bool = Field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        secret_key = os.getenv("SECRET_KEY", "").strip()
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set")

        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL environment variable must be set")

        parsed_db = urlparse(database_url)
        if parsed_db.scheme != "postgresql+asyncpg":
            raise ValueError("DATABASE_URL must start with 'postgresql+asyncpg://'")
        if not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        db_pool_size = int(os.getenv("DB_POOL_SIZE", cls.model_fields["db_pool_size"].default))
        if db_pool_size <= 0:
            raise ValueError("DB_POOL_SIZE must be greater than 0")

        db_max_overflow = int(
            os.getenv("DB_MAX_OVERFLOW", cls.model_fields["db_max_overflow"].default)
        )
        if db_max_overflow < 0:
            raise ValueError("DB_MAX_OVERFLOW must be greater than or equal to 0")

        db_pool_recycle = int(
            os.getenv("DB_POOL_RECYCLE", cls.model_fields["db_pool_recycle"].default)
        )
        if db_pool_recycle <= 0:
            raise ValueError("DB_POOL_RECYCLE must be greater than 0")

        db_pool_pre_ping = _parse_bool(
            "DB_POOL_PRE_PING",
            os.getenv("DB_POOL_PRE_PING", str(cls.model_fields["db_pool_pre_ping"].default)),
        )

        # Ownership override may only ever cover UPDATE and DELETE
        raw_owner_operations = os.getenv("OWNER_OVERRIDE_OPERATIONS", "UPDATE,DELETE")
        owner_override_operations = list(
            dict.fromkeys(op.upper() for op in _parse_list("OWNER_OVERRIDE_OPERATIONS", raw_owner_operations))
        )
        allowed_operations = {op.value for op in OWNABLE_OPERATIONS}
        unknown = [op for op in owner_override_operations if op not in allowed_operations]
        if unknown:
            raise ValueError(
                "OWNER_OVERRIDE_OPERATIONS may only contain UPDATE and DELETE, got: "
                + ", ".join(unknown)
            )

        audit_permission_denials = _parse_bool(
            "AUDIT_PERMISSION_DENIALS", os.getenv("AUDIT_PERMISSION_DENIALS", "true")
        )

        return cls(
            app_name=os.getenv("APP_NAME", cls.model_fields["app_name"].default),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            database_url=database_url,
            secret_key=secret_key,
            algorithm=os.getenv("ALGORITHM", cls.model_fields["algorithm"].default),
            db_pool_size=db_pool_size,
            db_max_overflow=db_max_overflow,
            db_pool_recycle=db_pool_recycle,
            db_pool_pre_ping=db_pool_pre_ping,
            owner_override_operations=owner_override_operations,
            audit_permission_denials=audit_permission_denials,
        )


# Deferred so the module imports without environment validation
_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Uses double-checked locking so concurrent first accesses build one
    instance.

    Returns:
        Settings instance

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            _settings_instance = Settings.from_env()

    return _settings_instance


class _SettingsProxy:
    """Proxy to defer settings creation until first attribute access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]

"""
Tests for the permission grammar.

Exactly two shapes are valid: ``resource.OPERATION`` and ``SYSTEM.NAME``.
Everything else is malformed and never evaluates as granted.
"""
import pytest

from app.auth.grammar import (
    MalformedPermissionError,
    ParsedPermission,
    is_system_permission,
    make_permission,
    normalize_permissions,
    parse_permission,
    require_valid,
    validate,
)
from app.auth.rbac_contract import Operation, ResourceKind


class TestValidate:
    @pytest.mark.parametrize(
        "permission",
        [
            "article.CREATE",
            "article.READ",
            "article.UPDATE",
            "article.DELETE",
            "article.ALL",
            "callforpapers.READ",
            "editorialboardmember.ALL",
            "SYSTEM.ADMIN",
            "SYSTEM.ROLE_MANAGEMENT",
            "SYSTEM.BACKUP",
        ],
    )
    def test_accepts_well_formed(self, permission):
        assert validate(permission) is True

    @pytest.mark.parametrize(
        "permission",
        [
            "",
            "article",
            "article.",
            ".READ",
            "article.READ.extra",
            "article.read",
            "Article.READ",
            "ARTICLE.READ",
            "system.ADMIN",
            "SYSTEM.admin",
            "SYSTEM.ROOT",
            "SYSTEM.ALL",
            "article.PUBLISH",
            "unknown.READ",
            " article.READ",
            "article.READ ",
            "article.*",
            "*.READ",
            "SYSTEM.READ",
        ],
    )
    def test_rejects_malformed(self, permission):
        assert validate(permission) is False

    @pytest.mark.parametrize("value", [None, 42, b"article.READ", ["article.READ"]])
    def test_rejects_non_strings(self, value):
        assert validate(value) is False

    def test_every_kind_and_operation_pair_is_valid(self):
        for kind in ResourceKind:
            for operation in Operation:
                assert validate(f"{kind.value}.{operation.value}")


class TestParse:
    def test_parses_resource_permission(self):
        parsed = parse_permission("article.UPDATE")
        assert parsed == ParsedPermission(scope="article", name="UPDATE")
        assert parsed.resource is ResourceKind.ARTICLE
        assert parsed.operation is Operation.UPDATE
        assert parsed.is_system is False
        assert str(parsed) == "article.UPDATE"

    def test_parses_system_permission(self):
        parsed = parse_permission("SYSTEM.SETTINGS")
        assert parsed.is_system is True
        assert parsed.resource is None
        assert parsed.operation is None

    def test_malformed_raises_value_error(self):
        with pytest.raises(MalformedPermissionError) as exc_info:
            parse_permission("article.read")
        assert isinstance(exc_info.value, ValueError)
        assert exc_info.value.invalid == ["article.read"]


class TestHelpers:
    def test_is_system_permission(self):
        assert is_system_permission("SYSTEM.ADMIN") is True
        assert is_system_permission("article.ALL") is False
        assert is_system_permission("SYSTEM.NOPE") is False

    def test_make_permission(self):
        assert make_permission(ResourceKind.MEDIA, Operation.DELETE) == "media.DELETE"
        assert make_permission("category", "READ") == "category.READ"

    def test_make_permission_rejects_system_scope(self):
        with pytest.raises(MalformedPermissionError):
            make_permission("SYSTEM", "ADMIN")

    def test_require_valid_names_every_invalid_entry(self):
        with pytest.raises(MalformedPermissionError) as exc_info:
            require_valid(["article.READ", "bad", "article.read"])
        assert exc_info.value.invalid == ["bad", "article.read"]

    def test_normalize_keeps_first_seen_order(self):
        assert normalize_permissions(
            ["media.READ", "article.READ", "media.READ", "SYSTEM.ANALYTICS"]
        ) == ["media.READ", "article.READ", "SYSTEM.ANALYTICS"]

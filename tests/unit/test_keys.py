"""Unit tests for key validation and cache key composition."""

from dataclasses import dataclass

import pytest

from idempotency_cache.keys import (
    ANONYMOUS_CALLER_ID,
    build_cache_key,
    is_uuid_key,
    principal_role,
    redact_key,
    resolve_caller_id,
    validate_idempotency_key,
)


@dataclass
class User:
    id: int
    role: str = "cashier"


class TestValidateIdempotencyKey:
    """Tests for validate_idempotency_key()."""

    @pytest.mark.parametrize(
        "token",
        [
            "550e8400-e29b-41d4-a716-446655440000",
            "9f86d081-884c-4d30-8e1b-1b9bfe6a0f0c",
            "6BA7B810-9DAD-11D1-80B4-00C04FD430C8",
            "order-retry-001",
            "abcdefgh",
            "A" * 64,
            "snake_case_key_42",
        ],
    )
    def test_accepts_valid_keys(self, token: str) -> None:
        assert validate_idempotency_key(token) is True

    @pytest.mark.parametrize(
        "token",
        [
            "",
            "abc",
            "abcdefg",
            "A" * 65,
            "semi colon;drop",
            "key with spaces",
            "key/with/slash",
            "clé-unicode-1",
            "order-retry-001\n",
        ],
    )
    def test_rejects_invalid_keys(self, token: str) -> None:
        assert validate_idempotency_key(token) is False

    def test_rejects_non_string(self) -> None:
        assert validate_idempotency_key(None) is False  # type: ignore[arg-type]
        assert validate_idempotency_key(12345678) is False  # type: ignore[arg-type]

    def test_uuid_with_bad_version_falls_back_to_plain_rule(self) -> None:
        # Version nibble 0 is not a UUID, and hyphens keep it a valid plain token
        token = "550e8400-e29b-01d4-a716-446655440000"
        assert is_uuid_key(token) is False
        assert validate_idempotency_key(token) is True

    def test_uuid_with_bad_variant(self) -> None:
        assert is_uuid_key("550e8400-e29b-41d4-c716-446655440000") is False

    def test_uuid_is_case_insensitive(self) -> None:
        assert is_uuid_key("550E8400-E29B-41D4-A716-446655440000") is True


class TestResolveCallerId:
    """Tests for resolve_caller_id()."""

    def test_mapping_principal(self) -> None:
        assert resolve_caller_id({"id": 42, "role": "cashier"}) == "42"

    def test_object_principal(self) -> None:
        assert resolve_caller_id(User(id=7)) == "7"

    def test_plain_identifier(self) -> None:
        assert resolve_caller_id("cashier-7") == "cashier-7"
        assert resolve_caller_id(99) == "99"

    def test_missing_principal_is_anonymous(self) -> None:
        assert resolve_caller_id(None) == ANONYMOUS_CALLER_ID

    def test_principal_without_id_is_anonymous(self) -> None:
        assert resolve_caller_id({"role": "cashier"}) == ANONYMOUS_CALLER_ID
        assert resolve_caller_id({"id": ""}) == ANONYMOUS_CALLER_ID

    def test_custom_anonymous_sentinel(self) -> None:
        assert resolve_caller_id(None, anonymous="guest") == "guest"


class TestPrincipalRole:
    def test_mapping_role(self) -> None:
        assert principal_role({"id": 1, "role": "admin"}) == "admin"

    def test_object_role(self) -> None:
        assert principal_role(User(id=1, role="manager")) == "manager"

    def test_no_role(self) -> None:
        assert principal_role(None) is None
        assert principal_role("cashier-7") is None
        assert principal_role({"id": 1}) is None


class TestCacheKey:
    def test_build_cache_key(self) -> None:
        assert build_cache_key("idempotency", "42", "order-retry-001") == (
            "idempotency:42:order-retry-001"
        )

    def test_same_token_different_callers_do_not_collide(self) -> None:
        token = "550e8400-e29b-41d4-a716-446655440000"
        assert build_cache_key("idempotency", "1", token) != build_cache_key(
            "idempotency", "2", token
        )

    def test_redact_key_truncates_token(self) -> None:
        assert redact_key("idempotency:42:order-retry-001") == "idempotency:42:order-..."

    def test_redact_key_keeps_short_tokens(self) -> None:
        assert redact_key("idempotency:42:abc") == "idempotency:42:abc"

    def test_redact_key_without_separator(self) -> None:
        assert redact_key("plain") == "plain"

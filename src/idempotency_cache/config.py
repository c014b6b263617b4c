"""Configuration module for the idempotency cache.

This module provides the IdempotencyConfig class that controls which requests
are protected, how idempotency keys are read and scoped, and which storage
backend holds the cached responses.

Example:
    Basic usage with defaults:

        >>> config = IdempotencyConfig()
        >>> config.enabled_methods
        ['POST', 'PUT', 'PATCH']
        >>> config.storage_backend
        'sql'

    Selecting the primary store by configuring it:

        >>> config = IdempotencyConfig(redis_url="redis://cache:6379/0")
        >>> config.storage_backend
        'redis'

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_ENABLED_METHODS'] = 'POST,PUT'
        >>> os.environ['IDEMPOTENCY_DEFAULT_TTL_SECONDS'] = '3600'
        >>> config = IdempotencyConfig.from_env()
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Valid HTTP methods for idempotency
VALID_HTTP_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "CONNECT",
    "OPTIONS",
    "TRACE",
    "PATCH",
}

StorageBackendName = Literal["redis", "sql", "memory"]


class IdempotencyConfig(BaseModel):
    """Configuration for the idempotency cache.

    Attributes:
        enabled_methods: HTTP methods eligible for replay/capture. Requests with
            any other method bypass the cache entirely. Default POST, PUT, PATCH.
        header_name: Request header carrying the client's idempotency key.
        replay_header_name: Response header set to "true" on replayed responses.
        default_ttl_seconds: TTL used when no policy overrides it.
            Must be between 1 and 604800 (7 days). Default is 86400 (24 hours).
        key_prefix: Scope prefix of every cache key
            (``<key_prefix>:<caller id>:<token>``).
        anonymous_caller_id: Caller id used when no authenticated principal is set.
        storage_backend: "redis" (primary), "sql" (relational fallback) or
            "memory". When omitted it is derived once from configuration
            presence: "redis" if redis_url is set, otherwise "sql".
        redis_url: Connection URL of the primary expiring store.
        database_url: SQLAlchemy async URL of the relational fallback.
        storage_timeout_seconds: Upper bound on every storage round-trip.
            A timed-out call is treated as a storage failure.
        cleanup_probability: Fraction of fallback writes that also sweep
            expired rows.
        cleanup_interval_seconds: Period of the optional background cleanup loop.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    enabled_methods: list[str] | str = Field(
        default=["POST", "PUT", "PATCH"],
        description="HTTP methods eligible for idempotent replay",
    )
    header_name: str = Field(
        default="Idempotency-Key",
        min_length=1,
        description="Request header carrying the idempotency key",
    )
    replay_header_name: str = Field(
        default="Idempotency-Replay",
        min_length=1,
        description="Response header marking replayed responses",
    )
    default_ttl_seconds: int = Field(
        default=86400,
        description="Time-to-live in seconds for cached responses (1-604800)",
    )
    key_prefix: str = Field(
        default="idempotency",
        min_length=1,
        description="Scope prefix of composite cache keys",
    )
    anonymous_caller_id: str = Field(
        default="anonymous",
        min_length=1,
        description="Caller id used for unauthenticated requests",
    )
    storage_backend: StorageBackendName = Field(
        default="sql",
        description="Storage backend; derived from redis_url presence when unset",
    )
    redis_url: str | None = Field(
        default=None,
        description="Connection URL for the Redis primary store",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./idempotency.db",
        description="SQLAlchemy async URL for the relational fallback",
    )
    storage_timeout_seconds: float = Field(
        default=2.0,
        description="Timeout applied to each storage call (0-30]",
    )
    cleanup_probability: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Fraction of fallback writes that sweep expired rows",
    )
    cleanup_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds between background cleanup runs",
    )

    model_config = {"frozen": True}

    @field_validator("enabled_methods", mode="before")
    @classmethod
    def validate_enabled_methods(cls, v: Any) -> list[str]:
        """Validate and normalize enabled HTTP methods.

        Args:
            v: List of HTTP method strings or comma-separated string.

        Returns:
            List of uppercase, validated HTTP methods.

        Raises:
            ValueError: If any method is not a valid HTTP method.
        """
        if isinstance(v, str):
            v = [method.strip() for method in v.split(",") if method.strip()]

        if not isinstance(v, list):
            raise ValueError("enabled_methods must be a list or comma-separated string")

        methods = [method.upper() for method in v]

        invalid_methods = set(methods) - VALID_HTTP_METHODS
        if invalid_methods:
            raise ValueError(
                f"Invalid HTTP methods: {', '.join(sorted(invalid_methods))}. "
                f"Valid methods are: {', '.join(sorted(VALID_HTTP_METHODS))}"
            )

        return methods

    @field_validator("default_ttl_seconds")
    @classmethod
    def validate_default_ttl_seconds(cls, v: int) -> int:
        """Validate TTL is within acceptable range."""
        if not (1 <= v <= 604800):
            raise ValueError(f"default_ttl_seconds must be between 1 and 604800 (7 days), got {v}")
        return v

    @field_validator("key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """Reject prefixes that would blur the cache key segments."""
        if ":" in v:
            raise ValueError("key_prefix must not contain ':'")
        return v

    @field_validator("storage_timeout_seconds")
    @classmethod
    def validate_storage_timeout_seconds(cls, v: float) -> float:
        """Validate the storage timeout is positive and bounded."""
        if not (0 < v <= 30):
            raise ValueError(f"storage_timeout_seconds must be in (0, 30], got {v}")
        return v

    @model_validator(mode="before")
    @classmethod
    def resolve_storage_backend(cls, data: Any) -> Any:
        """Pick the storage backend from configuration presence.

        The choice is made once, when the configuration is built at startup.
        """
        if isinstance(data, dict) and not data.get("storage_backend"):
            data = {**data, "storage_backend": "redis" if data.get("redis_url") else "sql"}
        return data

    @model_validator(mode="after")
    def validate_storage_config(self) -> "IdempotencyConfig":
        """Validate storage-specific configuration.

        Raises:
            ValueError: If redis is requested without a redis_url.
        """
        if self.storage_backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when storage_backend is 'redis'")
        return self

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_") -> "IdempotencyConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        ``IDEMPOTENCY_REDIS_URL``. Missing variables keep their defaults.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            IdempotencyConfig instance populated from environment variables.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "enabled_methods": list,
            "header_name": str,
            "replay_header_name": str,
            "default_ttl_seconds": int,
            "key_prefix": str,
            "anonymous_caller_id": str,
            "storage_backend": str,
            "redis_url": str,
            "database_url": str,
            "storage_timeout_seconds": float,
            "cleanup_probability": float,
            "cleanup_interval_seconds": int,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is None or env_value == "":
                continue
            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is float:
                config_dict[field_name] = float(env_value)
            else:
                # lists stay comma-separated; the validators split them
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "IdempotencyConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)

"""Configuration module for the replay driver.

This module provides the ReplayConfig class for configuring record lifetime,
the storage backend and the ambient logging/cleanup settings.

Example:
    Basic usage with defaults:

        >>> config = ReplayConfig()
        >>> config.default_ttl_seconds
        7200

    Custom configuration:

        >>> config = ReplayConfig(
        ...     default_ttl_seconds=3600,
        ...     storage_adapter="file",
        ...     file_storage_path="/var/lib/durable-replay",
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['DURABLE_REPLAY_STORAGE_ADAPTER'] = 'file'
        >>> os.environ['DURABLE_REPLAY_DEFAULT_TTL_SECONDS'] = '3600'
        >>> config = ReplayConfig.from_env()
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ReplayConfig(BaseModel):
    """Configuration for the replay driver.

    Attributes:
        default_ttl_seconds: Lifetime of an execution record after its last
            write. An abandoned run is swept by cleanup once this passes.
            Must be between 1 and 604800 (7 days). Default is 7200 (2 hours).
        storage_adapter: Storage backend for records and outcomes:
            "memory" or "file". Default is "memory".
        file_storage_path: Directory for the file storage adapter.
        cleanup_interval_seconds: Time between background cleanup sweeps.
        log_level: Log level passed to configure_logging().
        json_logs: Emit JSON logs (True) or console logs (False).

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    default_ttl_seconds: int = Field(
        default=7200,
        description="Lifetime in seconds of an execution record (1-604800)",
    )
    storage_adapter: Literal["memory", "file"] = Field(
        default="memory",
        description="Storage backend for execution records",
    )
    file_storage_path: str = Field(
        default="/tmp/durable-replay",
        description="Directory path for file storage adapter",
    )
    cleanup_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Seconds between background cleanup sweeps",
    )
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=True, description="Emit JSON formatted logs")

    model_config = {"frozen": True}

    @field_validator("default_ttl_seconds")
    @classmethod
    def validate_default_ttl_seconds(cls, v: int) -> int:
        """Validate TTL is within acceptable range.

        Raises:
            ValueError: If TTL is not between 1 and 604800 (7 days).
        """
        if not (1 <= v <= 604800):
            raise ValueError(f"default_ttl_seconds must be between 1 and 604800 (7 days), got {v}")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Normalize the log level to uppercase and check it is known.

        Example:
            >>> ReplayConfig(log_level="debug").log_level
            'DEBUG'
        """
        level = str(v).strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return level

    @classmethod
    def from_env(cls, prefix: str = "DURABLE_REPLAY_") -> "ReplayConfig":
        """Create configuration from environment variables.

        Variable names are uppercase field names with the prefix. Missing
        variables fall back to the model defaults.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            ReplayConfig instance populated from environment variables.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "default_ttl_seconds": int,
            "storage_adapter": str,
            "file_storage_path": str,
            "cleanup_interval_seconds": int,
            "log_level": str,
            "json_logs": bool,
        }

        for field_name, field_type in field_types.items():
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is None:
                continue
            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is bool:
                config_dict[field_name] = env_value.strip().lower() in ("1", "true", "yes", "on")
            else:
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ReplayConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)

"""
Configuration module for the Deletion Toolkit.

Provides centralized configuration for deletion orchestration, audit trail,
cache invalidation and the column conventions used to describe reflected tables.
"""

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union, get_args, get_origin

from pydantic import BaseModel, Field, field_validator

from .entity.capabilities import TimestampKind

logger = logging.getLogger(__name__)


class ChecksumAlgorithm(str, Enum):
    """Supported checksum algorithms for audit entries."""

    SHA256 = "sha256"
    SHA512 = "sha512"
    BLAKE2B = "blake2b"


class DeletionConfig(BaseModel):
    """Central configuration for deletion orchestration.

    Configuration Sources (in order of precedence):
        1. Programmatic settings (highest priority)
        2. Environment variables (DELETION_ prefix)
        3. Configuration files (JSON or YAML)
        4. Default values (lowest priority)

    Example:
        >>> config = DeletionConfig(
        ...     application_name="Inventory",
        ...     active_deleted_value=-1,
        ...     display_order_compaction=True,
        ... )

        Loading from environment:

        >>> os.environ['DELETION_AUDIT_ENABLED'] = 'false'
        >>> config = DeletionConfig.from_env()

    Column conventions:
        The ``*_column`` settings name the columns that signal each optional
        capability when a descriptor is built from a reflected table with
        ``EntityDescriptor.from_table``.
    """

    # General settings
    application_name: str = Field(
        "Deletion Toolkit", description="Application name recorded in audit entries"
    )
    environment: str = Field(
        "production", description="Environment (development, staging, production)"
    )
    log_level: str = Field("INFO", description="Log level used by the CLI")

    # Deletion behavior
    active_deleted_value: int = Field(
        -1, description="Value written to the active flag on deletion", lt=0
    )
    default_timestamp_kind: TimestampKind = Field(
        TimestampKind.LOCAL,
        description="Time representation of log-date columns unless declared",
    )
    enforce_permissions: bool = Field(
        True, description="Check declared entity permissions before deleting"
    )
    display_order_compaction: bool = Field(
        True, description="Renumber display order values after a deletion"
    )

    # Audit trail settings
    audit_enabled: bool = Field(True, description="Record deletions in an audit trail")
    audit_table_name: str = Field(
        "deletion_audit", description="Table used by SQL audit storage"
    )
    checksum_algorithm: ChecksumAlgorithm = Field(
        ChecksumAlgorithm.SHA256, description="Algorithm for audit entry checksums"
    )

    # Cache settings
    cache_enabled: bool = Field(True, description="Invalidate caches on commit")
    cache_ttl_seconds: int = Field(300, description="Cache time-to-live", gt=0)

    # Column conventions for reflected tables
    id_column: str = Field("id", description="Identifier column")
    is_active_column: str = Field("is_active", description="Active flag column")
    is_deleted_column: str = Field("is_deleted", description="Deleted flag column")
    delete_date_column: str = Field("deleted_at", description="Deletion timestamp")
    delete_user_column: str = Field("deleted_by", description="Deleting user column")
    update_date_column: str = Field("updated_at", description="Update timestamp")
    update_user_column: str = Field("updated_by", description="Updating user column")
    display_order_column: str = Field(
        "display_order", description="Display order column"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is valid."""
        valid_environments = {"development", "staging", "production", "test"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Environment must be one of: {', '.join(sorted(valid_environments))}"
            )
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is a standard logging level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json")

    def get_column_conventions(self) -> Dict[str, str]:
        """Get the column-name conventions keyed by descriptor field."""
        return {
            "id_field": self.id_column,
            "is_active_field": self.is_active_column,
            "is_deleted_field": self.is_deleted_column,
            "delete_date_field": self.delete_date_column,
            "delete_user_field": self.delete_user_column,
            "update_date_field": self.update_date_column,
            "update_user_field": self.update_user_column,
            "display_order_field": self.display_order_column,
        }

    @classmethod
    def from_env(cls, prefix: str = "DELETION_") -> "DeletionConfig":
        """
        Load configuration from environment variables.

        Args:
            prefix: Prefix for environment variables

        Returns:
            Configuration instance
        """
        config_dict: Dict[str, Any] = {}

        for field_name, field_info in cls.model_fields.items():
            env_var = f"{prefix}{field_name.upper()}"
            if env_var not in os.environ:
                continue
            value = os.environ[env_var]

            field_type = field_info.annotation
            if get_origin(field_type) is Union:
                args = get_args(field_type)
                field_type = next((arg for arg in args if arg is not type(None)), str)

            if field_type == bool:
                config_dict[field_name] = value.lower() in ("true", "1", "yes", "on")
            elif field_type == int:
                config_dict[field_name] = int(value)
            elif isinstance(field_type, type) and issubclass(field_type, Enum):
                config_dict[field_name] = field_type(value.lower())
            else:
                config_dict[field_name] = value

        return cls.model_validate(config_dict)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "DeletionConfig":
        """
        Load configuration from a JSON or YAML file.

        Args:
            path: Path to a .json, .yaml or .yml file

        Returns:
            Configuration instance
        """
        file_path = Path(path)
        text = file_path.read_text(encoding="utf-8")

        if file_path.suffix.lower() in (".yaml", ".yml"):
            import yaml

            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)

        return cls.model_validate(data)


# Global configuration instance
_config: Optional[DeletionConfig] = None


def get_config() -> DeletionConfig:
    """
    Get the global configuration instance.

    Returns:
        Global configuration
    """
    global _config

    if _config is None:
        try:
            _config = DeletionConfig.from_env()
        except ValueError as e:
            logger.warning(f"Ignoring invalid environment configuration: {e}")
            _config = DeletionConfig.model_validate({})

    return _config


def set_config(config: Optional[DeletionConfig]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Configuration to set, or None to reload from the environment
    """
    global _config
    _config = config


def configure(**kwargs: Any) -> DeletionConfig:
    """
    Configure the toolkit with keyword arguments.

    Args:
        **kwargs: Configuration parameters

    Returns:
        Updated configuration
    """
    global _config

    if _config is None:
        _config = DeletionConfig(**kwargs)
    else:
        config_dict = _config.model_dump()
        config_dict.update(kwargs)
        _config = DeletionConfig(**config_dict)

    return _config

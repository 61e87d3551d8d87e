"""Configuration management using YAML and Pydantic."""

import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from petition_archiver.exceptions import ConfigurationError

DEFAULT_REQUIRED_QUEUES = (
    "signatures_submitted_queue",
    "signatures_pending_validation_queue",
    "validations_queue",
)


def _substitute_env_vars(value: str) -> str:
    """Substitute environment variables in string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with environment variables substituted
    """
    pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2) if match.group(2) is not None else None
        env_value = os.getenv(var_name)
        if env_value is not None:
            return env_value
        if default is not None:
            return default
        raise ValueError(f"Environment variable {var_name} not set and no default provided")

    return re.sub(pattern, replacer, value)


def _substitute_env_in_dict(data: Any) -> Any:
    """Recursively substitute environment variables in a parsed YAML document."""
    if isinstance(data, dict):
        return {key: _substitute_env_in_dict(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_in_dict(item) for item in data]
    elif isinstance(data, str):
        return _substitute_env_vars(data)
    return data


class DatabaseConfig(BaseModel):
    """Connection settings for one store (processing or archive)."""

    model_config = {"frozen": True}

    name: str = Field(description="Database name")
    host: str = Field(description="Database host")
    port: int = Field(default=5432, description="Database port", gt=0, lt=65536)
    user: str = Field(description="Database user")
    password_env: Optional[str] = Field(
        default=None,
        description="Environment variable name containing database password (preferred)",
    )
    password: Optional[str] = Field(
        default=None,
        description="Database password (development only - use password_env in production)",
    )
    pool_size: int = Field(default=2, description="Connection pool size", gt=0, le=20)

    @model_validator(mode="after")
    def validate_password_source(self) -> "DatabaseConfig":
        """Validate that exactly one password source is provided."""
        if not self.password_env and not self.password:
            raise ValueError(
                "Either 'password_env' or 'password' must be provided. "
                "Use 'password_env' for production (recommended) or 'password' for development only."
            )
        if self.password_env and self.password:
            raise ValueError("Cannot specify both 'password_env' and 'password'.")
        return self

    def get_password(self) -> str:
        """Get password from environment variable or config file.

        Raises:
            ValueError: If password cannot be retrieved
        """
        if self.password_env:
            password = os.getenv(self.password_env)
            if not password:
                raise ValueError(f"Environment variable {self.password_env} not set")
            return password
        elif self.password:
            import warnings

            warnings.warn(
                f"Using password from config file for database '{self.name}'. "
                f"This is not recommended for production. Use 'password_env' instead.",
                UserWarning,
                stacklevel=2,
            )
            return self.password
        else:
            raise ValueError("No password source configured")


class TablesConfig(BaseModel):
    """Names of the processing and archive tables."""

    model_config = {"frozen": True}

    pending_signatures: str = Field(default="signatures_pending_validation")
    validations: str = Field(default="validations")
    processed_signatures: str = Field(default="signatures_processed")
    processed_validations: str = Field(default="validations_processed")
    not_validated_archive: str = Field(default="signatures_not_validated_archive")
    orphaned_validations_archive: str = Field(default="validations_orphaned_archive")
    processed_signatures_archive: str = Field(default="signatures_processed_archive")
    processed_validations_archive: str = Field(default="validations_processed_archive")
    timestamp_column: str = Field(
        default="timestamp_validation_close",
        description="Unix timestamp column compared against the watermark",
    )
    secret_key_column: str = Field(
        default="secret_validation_key",
        description="Column pairing validations with pending signatures",
    )


class WorkflowConfig(BaseModel):
    """Behaviour of one archive workflow run."""

    model_config = {"frozen": True}

    job_name: str = Field(
        default="archive_signatures",
        description="Job name, also used as the advisory lock key",
    )
    archive_invalid_signatures_enabled: bool = Field(
        default=True,
        description="Copy records into the archive tables before deleting them",
    )
    minimum_signature_lifetime: timedelta = Field(
        default=timedelta(days=14),
        description="Minimum age before any record may leave the processing tables "
        "(ISO 8601 duration such as 'P14D', or seconds)",
    )
    required_queues: tuple[str, ...] = Field(
        default=DEFAULT_REQUIRED_QUEUES,
        description="Intake queues that must be drained before records are treated as closed",
    )
    queue_status_table: str = Field(
        default="queue_status",
        description="Table (in the processing database) holding last-emptied timestamps",
    )
    statement_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout applied to every store operation",
        gt=0,
    )

    @field_validator("minimum_signature_lifetime")
    @classmethod
    def validate_lifetime(cls, v: timedelta) -> timedelta:
        """Reject negative lifetimes."""
        if v < timedelta(0):
            raise ValueError("minimum_signature_lifetime must not be negative")
        return v


class LockingConfig(BaseModel):
    """Mutual exclusion between overlapping runs."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=True, description="Hold an advisory lock for the run")
    acquire_timeout_seconds: float = Field(
        default=5.0,
        description="Give up acquiring the lock after this many seconds",
        ge=0,
    )
    poll_interval_seconds: float = Field(default=0.5, gt=0)


class AuditConfig(BaseModel):
    """Audit log configuration."""

    model_config = {"frozen": True}

    storage_type: str = Field(
        default="log",
        description="Where audit entries go: 'log' (structured log only) or 'database'",
    )
    table: str = Field(
        default="archive_workflow_audit_log",
        description="Audit table in the archive database (storage_type 'database')",
    )

    @field_validator("storage_type")
    @classmethod
    def validate_storage_type(cls, v: str) -> str:
        if v not in ("log", "database"):
            raise ValueError("storage_type must be 'log' or 'database'")
        return v


class MonitoringConfig(BaseModel):
    """Monitoring and metrics configuration."""

    model_config = {"frozen": True}

    metrics_enabled: bool = Field(default=True, description="Enable Prometheus metrics")
    metrics_port: Optional[int] = Field(
        default=None,
        description="Serve metrics over HTTP on this port while the run is active",
        gt=0,
        lt=65536,
    )
    pushgateway_url: Optional[str] = Field(
        default=None,
        description="Push metrics to a Prometheus pushgateway at the end of each run",
    )


class ArchiveWorkflowConfig(BaseModel):
    """Root configuration model."""

    model_config = {"frozen": True}

    version: str = Field(description="Configuration version")
    processing_database: DatabaseConfig = Field(description="Live processing tables")
    archive_database: DatabaseConfig = Field(description="Permanent archive tables")
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    tables: TablesConfig = Field(default_factory=TablesConfig)
    locking: LockingConfig = Field(default_factory=LockingConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate configuration version."""
        if v != "1.0":
            raise ValueError(f"Unsupported configuration version: {v}")
        return v

    @model_validator(mode="after")
    def validate_lock_pool(self) -> "ArchiveWorkflowConfig":
        """Validate the processing pool can serve queries while the lock is held."""
        if self.locking.enabled and self.processing_database.pool_size < 2:
            raise ValueError(
                "processing_database.pool_size must be at least 2 when locking is enabled; "
                "the lock keeps one connection checked out for the whole run."
            )
        return self


def load_config(config_path: Path) -> ArchiveWorkflowConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated, immutable configuration object

    Raises:
        ConfigurationError: If configuration is missing or invalid
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            context={"path": str(config_path)},
        ) from None
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e

    if not raw_config:
        raise ConfigurationError("Configuration file is empty", context={"path": str(config_path)})

    try:
        config_data = _substitute_env_in_dict(raw_config)
        return ArchiveWorkflowConfig.model_validate(config_data)
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e

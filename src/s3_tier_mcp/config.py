"""Settings for the S3 tiering MCP server.

Values come from environment variables (after ``.env`` in the working
directory is loaded) and are validated once, then cached for the process.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

_config_logger = logging.getLogger(__name__)

RestoreTier = Literal["Standard", "Bulk", "Expedited"]


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO")
    file: str | None = Field(default=None, description="Optional log file path")


class ExecutionSettings(BaseModel):
    sdk_timeout_seconds: int = Field(default=30, ge=1, le=300)
    max_retries: int = Field(default=2, ge=0, le=10)
    max_concurrency: int = Field(
        default=8,
        ge=1,
        le=16,
        description="Upper bound on per-object storage calls in flight at once.",
    )
    restore_days: int = Field(default=7, ge=1, le=30)
    restore_tier: RestoreTier = Field(default="Standard")


class StorageSettings(BaseModel):
    policy_path: str = Field(default="~/.config/s3-tier-mcp/policies.json")
    status_log_path: str | None = Field(
        default=None,
        description="JSON-lines file the status ledger appends outcomes to.",
    )
    status_log_limit: int = Field(default=20, ge=1, le=1000)


class AWSSettings(BaseModel):
    default_region: str | None = None
    default_profile: str | None = None


class ServerSettings(BaseModel):
    instructions: str = Field(
        default=(
            "Use these tools to browse S3 buckets, select objects with masks, and move "
            "them between storage classes. Load a bucket before setting a mask, and "
            "review the mask match count before starting a transition."
        )
    )


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)


ENV_KEYS = {
    "instructions": "MCP_INSTRUCTIONS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "policy_path": "POLICY_STORE_PATH",
    "status_log_path": "STATUS_LOG_PATH",
    "status_log_limit": "STATUS_LOG_LIMIT",
    "max_concurrency": "TIERING_MAX_CONCURRENCY",
    "restore_days": "TIERING_RESTORE_DAYS",
    "restore_tier": "TIERING_RESTORE_TIER",
    "sdk_timeout": "SDK_TIMEOUT_SECONDS",
    "max_retries": "AWS_MCP_MAX_RETRIES",
    "aws_region": "AWS_REGION",
    "aws_default_region": "AWS_DEFAULT_REGION",
    "aws_profile": "AWS_PROFILE",
}


def _resolve_path(path: str) -> str:
    return str(Path(path).expanduser().resolve())


def _env_path(key: str, default: str | None = None) -> str | None:
    value = os.getenv(ENV_KEYS[key]) or default
    return _resolve_path(value) if value else None


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _execution_from_env() -> dict[str, object]:
    defaults = ExecutionSettings()
    return {
        "sdk_timeout_seconds": _env_int(ENV_KEYS["sdk_timeout"], defaults.sdk_timeout_seconds),
        "max_retries": _env_int(ENV_KEYS["max_retries"], defaults.max_retries),
        "max_concurrency": _env_int(ENV_KEYS["max_concurrency"], defaults.max_concurrency),
        "restore_days": _env_int(ENV_KEYS["restore_days"], defaults.restore_days),
        "restore_tier": os.getenv(ENV_KEYS["restore_tier"]) or defaults.restore_tier,
    }


def _storage_from_env() -> dict[str, object]:
    defaults = StorageSettings()
    return {
        "policy_path": _env_path("policy_path", defaults.policy_path),
        "status_log_path": _env_path("status_log_path"),
        "status_log_limit": _env_int(ENV_KEYS["status_log_limit"], defaults.status_log_limit),
    }


def load_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=Path.cwd() / ".env")

    settings_data: dict[str, object] = {
        "server": {
            "instructions": os.getenv(ENV_KEYS["instructions"]) or ServerSettings().instructions,
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"]) or LoggingSettings().level,
            "file": _env_path("log_file"),
        },
        "execution": _execution_from_env(),
        "storage": _storage_from_env(),
        "aws": {
            "default_region": (
                os.getenv(ENV_KEYS["aws_region"]) or os.getenv(ENV_KEYS["aws_default_region"])
            ),
            "default_profile": os.getenv(ENV_KEYS["aws_profile"]),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    Path(settings.storage.policy_path).parent.mkdir(parents=True, exist_ok=True)
    if settings.storage.status_log_path:
        Path(settings.storage.status_log_path).parent.mkdir(parents=True, exist_ok=True)

    return settings

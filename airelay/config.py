"""Configuration loading and validation using Pydantic models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError


class DatabaseConfig(BaseModel):
    url: str = Field(
        "sqlite:///./airelay.db",
        description="SQLAlchemy URL for the endpoint/model store.",
    )
    echo: bool = False


class RelayConfig(BaseModel):
    request_timeout_s: float = Field(
        60.0,
        gt=0.0,
        description="Upper bound for an upstream call to start responding.",
    )
    connect_timeout_s: float = Field(10.0, gt=0.0)
    referrer: str = Field(
        "QanduApp",
        description="Application identifier sent to providers that accept one.",
    )
    max_history_messages: int = Field(
        20,
        ge=0,
        description="Most-recent-N history truncation applied before relaying.",
    )
    error_body_max_chars: int = Field(2000, ge=64)
    passthrough_upstream_status: bool = Field(
        False,
        description="Return the provider's status instead of 502 on upstream errors.",
    )


class CatalogConfig(BaseModel):
    google_max_pages: int = Field(5, ge=1, le=50)
    google_page_size: int = Field(100, ge=1, le=1000)


class APIConfig(BaseModel):
    host: str = Field("127.0.0.1")
    port: int = Field(8080, ge=1, le=65535)
    max_body_bytes: int = Field(1_000_000, ge=1024)
    admin_token: Optional[str] = Field(
        None, description="Bearer token required on /admin routes when set."
    )


class LoggingConfig(BaseModel):
    level: str = Field("INFO")
    log_dir: Optional[Path] = None

    @field_validator("level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.strip().upper()


class AppConfig(BaseModel):
    database: DatabaseConfig = DatabaseConfig()
    relay: RelayConfig = RelayConfig()
    catalog: CatalogConfig = CatalogConfig()
    api: APIConfig = APIConfig()
    logging: LoggingConfig = LoggingConfig()


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    database_url = os.environ.get("AIRELAY_DATABASE_URL")
    if database_url:
        config.database.url = database_url
    admin_token = os.environ.get("AIRELAY_ADMIN_TOKEN")
    if admin_token:
        config.api.admin_token = admin_token
    log_level = os.environ.get("AIRELAY_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.strip().upper()
    return config


def load_config(path: Path | str | None = None) -> AppConfig:
    """Load YAML configuration from disk, falling back to defaults."""

    data: dict = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    try:
        config = AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError("Invalid configuration", details=exc.errors()) from exc
    return _apply_env_overrides(config)


__all__ = [
    "APIConfig",
    "AppConfig",
    "CatalogConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "RelayConfig",
    "load_config",
]

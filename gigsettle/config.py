"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gigsettle.settlement.models import SplitPolicy
from gigsettle.utils.platform import get_config_file, get_data_dir


class DeliveryConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    backoff_base: float = Field(default=1.0, ge=0)
    timeout: float = 10.0
    workers: int = Field(default=4, ge=1)
    max_queue_size: int = 256
    response_max_chars: int = 2000
    user_agent: str = "gigsettle-webhooks/0.1"
    discord_username: str = "Gig Ledger"


class SettlementConfig(BaseModel):
    split_policy: SplitPolicy = SplitPolicy.EXCLUDE_NON_CLAIMING_MANAGER
    currency: str = "EUR"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GIGSETTLE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    settlement: SettlementConfig = Field(default_factory=SettlementConfig)
    data_dir: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return get_data_dir()

    def get_db_path(self) -> Path:
        return self.get_data_dir() / "webhooks.db"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    # Determine config file path
    if config_path is None:
        config_path = os.environ.get("GIGSETTLE_CONFIG")
    if config_path is None:
        default = get_config_file()
        if default.exists():
            config_path = default

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    if overrides:
        yaml_data = _deep_merge(yaml_data, overrides)

    # Init kwargs take priority over env vars in pydantic-settings
    return Settings(**yaml_data)

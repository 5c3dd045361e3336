"""
Configuration for a data source instance.

The configuration is a YAML file whose path is passed explicitly or read
from the DEVICE_DATASOURCE_CONFIG environment variable::

    host:
      base_url: http://grafana:3000
      api_key: <token>
      timeout: 10
    datasource:
      name: devices-db
      id: 3
    settings:
      hostname: db:3306
      user: grafana
      database: devices
      password: <secret>
    variables:
      device: ["1", "2"]
"""

from __future__ import annotations

import copy
import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError

from device_datasource.models import DataSourceRef
from device_datasource.utils.exceptions import ConfigError

CONFIG_ENV = "DEVICE_DATASOURCE_CONFIG"

SECRET_KEYS = ("password", "api_key")


class HostConfig(BaseModel):
    base_url: str = Field(..., description="Base URL of the visualization host")
    api_key: Optional[SecretStr] = Field(None, description="Bearer token for the host API")
    timeout: float = Field(10.0, gt=0, description="Request timeout in seconds (default: 10)")


class DataSourceSettings(BaseModel):
    # passed through to the backend as data source identity, never parsed here
    hostname: str = Field(..., description="Address of the device database")
    user: str = Field(..., description="Database user")
    database: str = Field(..., description="Database name")
    password: Optional[SecretStr] = Field(None, description="Write-only database password")


class DataSourceConfig(BaseModel):
    host: HostConfig
    datasource: DataSourceRef
    settings: Optional[DataSourceSettings] = None
    variables: Dict[str, Any] = Field(default_factory=dict, description="Template variable bindings")


def load_config(path: Optional[str] = None) -> DataSourceConfig:
    """
    Load and validate the configuration file.

    Raises:
        ConfigError: no path is given, the file cannot be read or is invalid.
    """
    path = path or os.getenv(CONFIG_ENV)
    if not path:
        raise ConfigError(f"No config file given and {CONFIG_ENV} environment variable is not set")

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    try:
        return DataSourceConfig.model_validate(raw or {})
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc


def redact_cfg(cfg: dict) -> dict:
    """
    Return a copy of cfg with secrets redacted.
    """
    safe_cfg = copy.deepcopy(cfg)

    for block in safe_cfg.values():
        if not isinstance(block, dict):
            continue
        for key in SECRET_KEYS:
            if block.get(key) is not None:
                block[key] = '***'

    return safe_cfg

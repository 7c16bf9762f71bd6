"""Service configuration loading utilities."""

from __future__ import annotations

import os
import pathlib
from functools import lru_cache
from typing import Any, Dict

import yaml
from pydantic import BaseModel, Field

CONFIG_PATH_ENV = "TELEMETRY_CONFIG"
# Four slashes: an absolute path on the /data volume.
DEFAULT_DATABASE_URL = "sqlite:////data/telemetry.db"

_ENV_FIELDS = {
    "server_address": "SERVER_ADDRESS",
    "database_url": "DATABASE_URL",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "reload": "RELOAD",
}


class Settings(BaseModel):
    server_address: str = Field(default="0.0.0.0:8080")
    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    log_level: str = Field(default="WARNING")
    log_file: str = Field(default="logs/telemetry.jsonl")
    reload: bool = False

    def _split_address(self) -> tuple[str, int]:
        host, sep, port = self.server_address.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"Invalid server address: {self.server_address!r}")
        return host or "0.0.0.0", int(port)

    @property
    def host(self) -> str:
        return self._split_address()[0]

    @property
    def port(self) -> int:
        return self._split_address()[1]


def _read_yaml(path: pathlib.Path) -> Dict[str, Any]:
    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return raw


@lru_cache(maxsize=1)
def load_settings(path: pathlib.Path | None = None) -> Settings:
    """Build settings from an optional YAML file, overridden by environment variables."""
    values: Dict[str, Any] = {}
    config_path = path or (
        pathlib.Path(os.environ[CONFIG_PATH_ENV]) if os.getenv(CONFIG_PATH_ENV) else None
    )
    if config_path is not None:
        values.update(_read_yaml(config_path))

    for field_name, env_name in _ENV_FIELDS.items():
        env_value = os.getenv(env_name)
        if env_value is not None:
            values[field_name] = env_value

    return Settings(**values)


__all__ = ["Settings", "load_settings"]

"""
Configuration for SKMembase.

Sources, highest priority first:
    1. Environment variables (MEMBASE_ENDPOINT, MEMBASE_ACCOUNT, ...)
    2. Config file (YAML, or JSON such as an openclaw.json)
    3. Built-in defaults

The backup password is never part of the config. Callers pass it
explicitly to every operation.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from . import CONFIG_HOME
from .backup import OWNER_PREFIX
from .store import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT

logger = logging.getLogger("skmembase.config")

CONFIG_ENV_VAR = "SKMEMBASE_CONFIG"
PLUGIN_ENTRY = "memory-membase"
OPENCLAW_CONFIG = "~/.openclaw/openclaw.json"

ENV_OVERRIDES = {
    "MEMBASE_ENDPOINT": "endpoint",
    "MEMBASE_ACCOUNT": "account",
    "MEMBASE_SECRET_KEY": "secret_key",
    "MEMBASE_AGENT_NAME": "agent_name",
    "MEMBASE_WORKSPACE_DIR": "workspace_dir",
}

# Keys used by openclaw.json plugin entries
_CAMEL_KEYS = {
    "secretKey": "secret_key",
    "agentName": "agent_name",
    "workspaceDir": "workspace_dir",
    "autoBackup": "auto_backup",
    "onAgentEnd": "on_agent_end",
    "minInterval": "min_interval",
}


class AutoBackupConfig(BaseModel):
    """End-of-session auto-backup settings."""

    enabled: bool = False
    on_agent_end: bool = False
    min_interval: int = Field(default=3600, description="Minimum seconds between auto-backups")


class MembaseConfig(BaseModel):
    """Everything needed to reach the store and find the workspace."""

    endpoint: str = DEFAULT_ENDPOINT
    account: str = ""
    secret_key: str = ""
    agent_name: str = "openclaw-agent"
    workspace_dir: Path = Path("~/.openclaw/workspace")
    timeout: float = DEFAULT_TIMEOUT
    auto_backup: AutoBackupConfig = Field(default_factory=AutoBackupConfig)

    @property
    def owner(self) -> str:
        """Store namespace for this agent's backups."""
        return f"{OWNER_PREFIX}{self.agent_name}"

    @property
    def credentials_configured(self) -> bool:
        return bool(self.account and self.secret_key)

    @property
    def workspace_path(self) -> Path:
        return self.workspace_dir.expanduser()


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase keys to field names, recursively."""
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            value = _normalize_keys(value)
        normalized[_CAMEL_KEYS.get(key, key)] = value
    return normalized


def _plugin_section(data: dict[str, Any]) -> dict[str, Any]:
    """Pick the memory-membase section out of an openclaw.json document."""
    plugins = data.get("plugins")
    if not isinstance(plugins, dict):
        return data
    entry = (plugins.get("entries") or {}).get(PLUGIN_ENTRY) or {}
    section = entry.get("config") if isinstance(entry, dict) else None
    return section if isinstance(section, dict) else {}


def default_config_path() -> Path:
    """Config file location.

    SKMEMBASE_CONFIG wins. Otherwise ``~/.skmembase/config.yaml``,
    falling back to the OpenClaw config when only that exists.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    own = Path(CONFIG_HOME).expanduser() / "config.yaml"
    openclaw = Path(OPENCLAW_CONFIG).expanduser()
    if not own.exists() and openclaw.exists():
        return openclaw
    return own


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.warning("Failed to load config %s: %s, using defaults", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config %s is not a mapping, using defaults", path)
        return {}
    return _normalize_keys(_plugin_section(data))


def load_config(path: Optional[Union[str, Path]] = None) -> MembaseConfig:
    """Load configuration from file and environment.

    Args:
        path: Config file. Defaults to :func:`default_config_path`.

    Returns:
        MembaseConfig with environment overrides applied.
    """
    config_path = Path(path).expanduser() if path else default_config_path()
    data = _read_config_file(config_path)

    for env_var, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[field_name] = value

    try:
        return MembaseConfig(**data)
    except ValidationError as exc:
        logger.warning("Invalid config in %s: %s, using defaults", config_path, exc)
        env_only = {
            field_name: os.environ[env_var]
            for env_var, field_name in ENV_OVERRIDES.items()
            if os.environ.get(env_var)
        }
        return MembaseConfig(**env_only)

"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./sheetchat.yaml (working directory)
3. ~/.sheetchat/config.yaml (user home)

Environment variables override YAML: SHEETCHAT_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
Without any file the defaults apply (env overrides still do).
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"


class AgentConfig(BaseModel):
    """Model and tool-loop settings."""

    model: str | None = None
    max_steps: int = Field(default=10, ge=1)
    max_tokens: int = Field(default=4096, ge=1)


class StorageConfig(BaseModel):
    """Where threads and the workbook live.

    Unset values fall back to DATABASE_URL / SHEETCHAT_DB_PATH and
    SHEETCHAT_WORKBOOK_PATH, then to the platform data directory.
    """

    database_url: str | None = None
    workbook_path: str | None = None


class SheetChatConfig(BaseModel):
    """Top-level configuration for SheetChat."""

    server: ServerConfig = ServerConfig()
    agent: AgentConfig = AgentConfig()
    storage: StorageConfig = StorageConfig()


def _find_config_file() -> Path | None:
    """Search for config file in standard locations."""
    candidates = [
        Path.cwd() / "sheetchat.yaml",
        Path.cwd() / "sheetchat.yml",
        Path.home() / ".sheetchat" / "config.yaml",
        Path.home() / ".sheetchat" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply SHEETCHAT_<SECTION>_<KEY> env var overrides to config data.

    For example, ``SHEETCHAT_AGENT_MAX_STEPS`` maps to section ``agent``,
    field ``max_steps``. Variables naming no known section or field (such
    as SHEETCHAT_DATA_DIR) are ignored.
    """
    prefix = "SHEETCHAT_"
    sections = SheetChatConfig.model_fields
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        suffix = key[len(prefix):].lower()
        section, _, field_name = suffix.partition("_")
        if section not in sections or not field_name:
            continue
        section_model = sections[section].annotation
        if field_name not in section_model.model_fields:
            continue
        if not isinstance(data.get(section), dict):
            data[section] = {}
        data[section][field_name] = value
    return data


def load_config(config_path: str | None = None) -> SheetChatConfig:
    """Load SheetChat configuration from YAML file with env var resolution.

    Args:
        config_path: Explicit path to config file. If None, uses
            SHEETCHAT_CONFIG_PATH, then searches standard locations
            (cwd, then ~/.sheetchat/).

    Returns:
        Parsed and validated SheetChatConfig.

    Raises:
        FileNotFoundError: If config_path is given but does not exist.
        pydantic.ValidationError: If the file contents are invalid.
    """
    config_path = config_path or os.environ.get("SHEETCHAT_CONFIG_PATH") or None
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return SheetChatConfig(**data)

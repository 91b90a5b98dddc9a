"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./crmforge.yaml (working directory)
3. ~/.crmforge/config.yaml (user home)
4. config.yaml in the platform user config dir

Environment variables override YAML: CRMFORGE_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
The Notion token falls back to NOTION_API_KEY when not configured.
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from src.services.notion_client import NOTION_API_BASE, NOTION_VERSION
from src.services.rate_limiter import DEFAULT_MAX_RETRIES, DEFAULT_MIN_INTERVAL
from src.utils.paths import get_config_dir

logger = logging.getLogger(__name__)

ENV_PREFIX = "CRMFORGE_"
CONFIG_PATH_ENV = "CRMFORGE_CONFIG"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve ${VAR} references in a nested data structure."""
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class ServerConfig(BaseModel):
    """HTTP server settings for ``crmforge serve``."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"


class RecordStoreConfig(BaseModel):
    """Notion API connection settings."""

    api_key: str = ""
    base_url: str = NOTION_API_BASE
    notion_version: str = NOTION_VERSION
    timeout_seconds: float = Field(default=30.0, gt=0)


class RateLimitConfig(BaseModel):
    """Pacing and retry settings for record store calls."""

    min_interval_seconds: float = Field(default=DEFAULT_MIN_INTERVAL, ge=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)


class CRMForgeConfig(BaseModel):
    """Top-level CRMForge configuration."""

    server: ServerConfig = ServerConfig()
    record_store: RecordStoreConfig = RecordStoreConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()

    def resolved_api_key(self) -> str:
        """Return the configured token, or NOTION_API_KEY from the environment."""
        return self.record_store.api_key or os.environ.get("NOTION_API_KEY", "")


def _find_config_file() -> Path | None:
    """Search for a config file in standard locations."""
    candidates = [
        Path.cwd() / "crmforge.yaml",
        Path.cwd() / "crmforge.yml",
        Path.home() / ".crmforge" / "config.yaml",
        Path.home() / ".crmforge" / "config.yml",
        get_config_dir() / "config.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _coerce(value: str) -> Any:
    """Coerce an env var string to int, float, bool, or leave it as a string."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply CRMFORGE_<SECTION>_<KEY> env var overrides to config data.

    Sections are matched longest-first so ``record_store`` and
    ``rate_limit`` resolve correctly; e.g. ``CRMFORGE_RATE_LIMIT_MAX_RETRIES``
    maps to section ``rate_limit``, field ``max_retries``.
    """
    known_sections = sorted(CRMForgeConfig.model_fields.keys(), key=len, reverse=True)
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key == CONFIG_PATH_ENV:
            continue
        suffix = key[len(ENV_PREFIX):].lower()
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                field = suffix[len(section_prefix):]
                if field:
                    section_data = data.setdefault(section, {})
                    if isinstance(section_data, dict):
                        section_data[field] = _coerce(value)
                break
    return data


def load_config(config_path: str | None = None) -> CRMForgeConfig:
    """Load CRMForge configuration.

    Args:
        config_path: Explicit path to a config file. If None, uses
            CRMFORGE_CONFIG or searches the standard locations.

    Returns:
        Validated CRMForgeConfig. Defaults plus env overrides when no file
        is found.

    Raises:
        FileNotFoundError: If an explicit config path does not exist.
        pydantic.ValidationError: If the config is invalid.
    """
    config_path = config_path or os.environ.get(CONFIG_PATH_ENV) or None
    raw_data: dict[str, Any] = {}
    if config_path:
        path: Path | None = Path(config_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found; using defaults")

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return CRMForgeConfig(**data)


@lru_cache(maxsize=1)
def get_config() -> CRMForgeConfig:
    """Load the config once per process (used by the API)."""
    return load_config()

"""Configuration loading utilities for the Muninn server.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable MUNINN_CONFIG
3. Fallback to "config/default.yaml"

Whatever the file provides is laid over :data:`DEFAULTS`, then optional
overrides are read from environment variables with prefix ``MUNINN__``
(e.g., MUNINN__ARCHIVE__ROOT=/tmp/archive).
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "server": {
        "host": "127.0.0.1",
        "port": 8080,
        "cors_origins": ["*"],
        "default_user": "my_user",
    },
    "archive": {"backend": "fs", "root": None, "workers": 4},
    "embeddings": {"provider": "openai", "model": "text-embedding-3-small"},
    "chat": {"provider": "openai", "model": "gpt-4-turbo-preview"},
    "reply": {
        "context_messages": 5,
        "system_prompt": "You are a helpful assistant. Earlier messages from this user are included for context.",
    },
    "logging": {"level": "INFO"},
}

ENV_PREFIX = "MUNINN__"
CONFIG_ENV = "MUNINN_CONFIG"
DEFAULT_CONFIG_PATH = "config/default.yaml"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Route log records to stderr at the given level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def _deep_merge(base: Dict[str, Any], over: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in over.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge(out[key], value)
        else:
            out[key] = value
    return out


def _coerce(value: str) -> Any:
    """Parse an environment string into null, bool, int or float where it looks like one."""
    lowered = value.lower()
    if lowered in {"null", "none", "~"}:
        return None
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def _env_overrides() -> Dict[str, Any]:
    """Collect ENV_PREFIX variables into a nested dict.

    e.g., MUNINN__ARCHIVE__ROOT=/tmp/x -> {"archive": {"root": "/tmp/x"}}
    """
    out: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        *sections, leaf = key[len(ENV_PREFIX):].lower().split("__")
        sub = out
        for section in sections:
            sub = sub.setdefault(section, {})
        sub[leaf] = _coerce(value)
    return out


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    return _deep_merge(cfg, _env_overrides())


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the server.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``MUNINN_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Defaults merged with the file contents, environment overrides applied.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV, DEFAULT_CONFIG_PATH)

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        return _apply_env_overrides(copy.deepcopy(DEFAULTS))

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Failed to parse config file {path_obj}: {e}") from e

    if not isinstance(loaded, dict):
        raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    return _apply_env_overrides(_deep_merge(DEFAULTS, loaded))

"""Repository settings.

Values come from, highest priority first: explicit arguments, ``BPREPO_*``
environment variables, ``~/.bprepo/config.json``, built-in defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable, Optional, Union

logger = logging.getLogger(__name__)

LIST_SEPARATOR = ";"

_ENV_VARS = {
    "model_path": "BPREPO_MODEL_PATH",
    "additional_model_paths": "BPREPO_ADDITIONAL_MODEL_PATH",
    "model_patterns": "BPREPO_MODEL_PATTERNS",
    "resource_package": "BPREPO_RESOURCE_PACKAGE",
    "resource_prefix": "BPREPO_RESOURCE_PREFIX",
    "reload_on_reset": "BPREPO_RELOAD_ON_RESET",
    "instantiate_items": "BPREPO_INSTANTIATE_ITEMS",
}


@dataclass
class RepositorySettings:
    """Settings shared by the model managers and the CLI."""

    model_path: Optional[str] = None
    additional_model_paths: list[str] = field(default_factory=list)
    model_patterns: list[str] = field(default_factory=list)
    resource_package: str = "bprepo"
    resource_prefix: str = "models"
    reload_on_reset: bool = False
    instantiate_items: bool = False


# ---------------------------------------------------------------------------
# Config file helpers (~/.bprepo/config.json)
# ---------------------------------------------------------------------------


def _config_path() -> Path:
    return Path.home() / ".bprepo" / "config.json"


def load_config() -> dict[str, Any]:
    """Load the local config from ``~/.bprepo/config.json``."""
    path = _config_path()
    if path.exists():
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable config file %s", path)
            return {}
    return {}


# ---------------------------------------------------------------------------
# Value conversion
# ---------------------------------------------------------------------------


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def split_list(value: Union[str, Iterable[str], None]) -> list[str]:
    """Split a ``;``-separated string (or flatten a list of such strings)."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    result: list[str] = []
    for entry in value:
        for part in str(entry).split(LIST_SEPARATOR):
            part = part.strip()
            if part:
                result.append(part)
    return result


def _convert(name: str, value: Any) -> Any:
    if name in ("additional_model_paths", "model_patterns"):
        return split_list(value)
    if name in ("reload_on_reset", "instantiate_items"):
        return parse_bool(value)
    return str(value)


def load_settings(**overrides: Any) -> RepositorySettings:
    """Build settings from the config file, the environment and *overrides*.

    Overrides that are ``None`` (or empty sequences) are ignored so CLI
    options can be passed through unconditionally.
    """
    values: dict[str, Any] = {}
    known = {f.name for f in fields(RepositorySettings)}

    for key, value in load_config().items():
        if key in known and value is not None:
            values[key] = _convert(key, value)

    for key, env_var in _ENV_VARS.items():
        raw = os.environ.get(env_var)
        if raw:
            values[key] = _convert(key, raw)

    for key, value in overrides.items():
        if key not in known:
            raise TypeError(f"Unknown setting '{key}'")
        if value is None or (isinstance(value, (list, tuple)) and not value):
            continue
        values[key] = _convert(key, value)

    return RepositorySettings(**values)

"""
Settings loader — reads admintx.yml and environment overrides.

Precedence (highest first):
    ADMINTX_* environment variables  >  admintx.yml  >  defaults

The settings file is optional: with none found, defaults apply.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from admintx.core.errors import ConfigError
from admintx.core.models.settings import Settings

logger = logging.getLogger(__name__)

SETTINGS_FILE = "admintx.yml"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for admintx.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to admintx.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit settings file. If None, searches upward; a
            missing file means defaults.
        environ: Environment to read overrides from (default: os.environ).

    Raises:
        ConfigError: If an explicit file is missing, or any source is invalid.
    """
    data: dict[str, Any] = {}

    if path is not None and not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")
    if path is None:
        path = find_settings_file()

    if path is not None:
        data = _read_yaml(path)
        logger.debug("Loaded settings from %s", path)

    data = apply_env_overrides(data, os.environ if environ is None else environ)

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay ADMINTX_* variables onto raw settings data."""
    merged = dict(data)

    if value := environ.get("ADMINTX_DATA_DIR"):
        merged["data_dir"] = value
    if value := environ.get("ADMINTX_ERROR_LOG"):
        merged["error_log"] = value
    if "ADMINTX_DRY_RUN" in environ:
        merged["dry_run"] = _parse_bool("ADMINTX_DRY_RUN", environ["ADMINTX_DRY_RUN"])
    if "ADMINTX_RECOVERY" in environ:
        merged["recovery_enabled"] = _parse_bool(
            "ADMINTX_RECOVERY", environ["ADMINTX_RECOVERY"]
        )

    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")

"""
Task loader — reads a YAML task file into a validated ``TaskFile``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from admintx.core.errors import ConfigError
from admintx.core.models.task import TaskFile

logger = logging.getLogger(__name__)


def load_task(path: Path) -> TaskFile:
    """Load and validate a task file.

    Raises:
        ConfigError: If the file is missing, not YAML, or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Task file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        task = TaskFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid task file {path}: {e}") from e

    logger.debug("Loaded task '%s' with %d step(s)", task.name, len(task.steps))
    return task

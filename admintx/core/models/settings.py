"""
Settings — runtime configuration for one invocation.

Loaded from ``admintx.yml`` (optional) and environment variables by
``admintx.core.config.loader``.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from admintx.core.models.task import RetrySpec

SYSTEM_DATA_DIR = Path("/var/log/admintx")
USER_DATA_DIR_NAME = ".admintx"


def default_data_dir() -> Path:
    """``/var/log/admintx`` for root, ``~/.admintx`` for everyone else."""
    if os.geteuid() == 0:
        return SYSTEM_DATA_DIR
    return Path.home() / USER_DATA_DIR_NAME


class Settings(BaseModel):
    """Engine and CLI settings."""

    model_config = ConfigDict(extra="forbid")

    data_dir: Path | None = None
    error_log: Path | None = None
    recovery_enabled: bool = True
    dry_run: bool = False
    retry: RetrySpec = Field(default_factory=RetrySpec)
    error_log_retention_days: int = Field(default=30, ge=1)

    def resolve_data_dir(self) -> Path:
        return self.data_dir or default_data_dir()

    def resolve_error_log(self) -> Path:
        if self.error_log is not None:
            return self.error_log
        return self.resolve_data_dir() / "logs" / "errors.log"

"""
Privilege probes — can this process run something elevated?

Used by the recovery classifier before it retries a
permission-denied operation under ``sudo``.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess

logger = logging.getLogger(__name__)


def is_root() -> bool:
    """Whether the current process already runs as root."""
    return os.geteuid() == 0


def sudo_available(timeout: int = 5) -> bool:
    """Whether passwordless ``sudo`` works right now.

    Runs ``sudo -n true``; never prompts.
    """
    if shutil.which("sudo") is None:
        return False
    try:
        result = subprocess.run(
            ["sudo", "-n", "true"],
            capture_output=True,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("sudo probe failed: %s", e)
        return False
    return result.returncode == 0


def elevation_available() -> bool:
    """Whether an elevated-privilege path exists for this process."""
    return is_root() or sudo_available()

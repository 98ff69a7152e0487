"""
Subprocess runner — the single place where ``subprocess.run`` is called.

Every shell step and every shell undo command ends up here.  The
runner never raises for a failing command: it reports the exit
status and combined output in a plain dict that ``ShellCommand``
turns into an ``Outcome``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)

# Exit statuses used when the command never produced one itself
EXIT_TIMEOUT = 124
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127

# Keep only the tail of very chatty commands
_OUTPUT_LIMIT = 4000


def _run_subprocess(
    cmd: str | list[str],
    *,
    elevated: bool = False,
    timeout: int = 300,
    env_overrides: dict[str, str] | None = None,
    cwd: str | None = None,
) -> dict[str, Any]:
    """Run a command and capture its status and combined output.

    A string runs through ``sh -c``; a list runs as argv.  With
    ``elevated`` the command is prefixed with non-interactive
    ``sudo -n`` unless the process already runs as root.

    Returns:
        ``{"exit_code": N, "output": "...", "elapsed_ms": N}`` plus
        ``"error"`` when the command could not be started.
    """
    use_shell = isinstance(cmd, str)
    argv: str | list[str] = cmd

    # ── Elevation ──
    if elevated and os.geteuid() != 0:
        argv = ["sudo", "-n", "sh", "-c", cmd] if use_shell else ["sudo", "-n", *cmd]
        use_shell = False

    # ── Environment ──
    env = None
    if env_overrides:
        env = os.environ.copy()
        for key, value in env_overrides.items():
            env[key] = os.path.expandvars(value)

    # ── Execute ──
    start = time.monotonic()
    try:
        result = subprocess.run(
            argv,
            shell=use_shell,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired:
        return {
            "exit_code": EXIT_TIMEOUT,
            "output": "",
            "error": f"Command timed out ({timeout}s)",
            "elapsed_ms": int((time.monotonic() - start) * 1000),
        }
    except FileNotFoundError as e:
        return {"exit_code": EXIT_NOT_FOUND, "output": str(e), "error": "command not found"}
    except PermissionError as e:
        return {
            "exit_code": EXIT_NOT_EXECUTABLE,
            "output": str(e),
            "error": "permission denied",
        }
    except OSError as e:
        logger.debug("Subprocess could not start: %s", argv, exc_info=True)
        return {"exit_code": EXIT_NOT_EXECUTABLE, "output": str(e), "error": str(e)}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    output = "\n".join(
        part.strip() for part in (result.stdout, result.stderr) if part and part.strip()
    )
    return {
        "exit_code": result.returncode,
        "output": output[-_OUTPUT_LIMIT:],
        "elapsed_ms": elapsed_ms,
    }

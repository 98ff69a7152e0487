"""
Recovery classifier — heuristic remedies for a few failure classes.

A fixed dispatch table keyed by exit status:

    1    generic failure   → missing directory: create the parent path
    2    misuse/permission → retry once under elevation, if available
    126  not executable    → chmod +x the target, retry once
    127  not found         → no remedy

Matching is done on the typed ``FailureContext`` the shell adapter
attaches, never on re-parsed output.  Each failure occurrence is
remediated at most once; remedies run their retry directly, never
through the supervisor.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable
from pathlib import Path

from admintx.adapters.shell import privileges
from admintx.core.engine.operation import run_operation
from admintx.core.errors import RecoveryAttemptFailure
from admintx.core.models.outcome import MISSING_DIRECTORY_KINDS, FailureContext, OperationKind

logger = logging.getLogger(__name__)

EXIT_GENERIC = 1
EXIT_MISUSE = 2
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127

_RECOGNISED = frozenset({0, EXIT_GENERIC, EXIT_MISUSE, EXIT_NOT_EXECUTABLE})


def is_recoverable_error(exit_code: int) -> bool:
    """Whether ``exit_code`` belongs to a class the classifier may remedy."""
    return exit_code in _RECOGNISED


class RecoveryClassifier:
    """Map a failure signature to a best-effort automatic remedy.

    Args:
        enabled: When False every attempt reports not recovered.
        elevation_available: Probe for an elevated-privilege path.
    """

    def __init__(
        self,
        enabled: bool = True,
        elevation_available: Callable[[], bool] = privileges.elevation_available,
    ):
        self.enabled = enabled
        self._elevation_available = elevation_available
        self._handlers: dict[int, Callable[[FailureContext], bool]] = {
            EXIT_GENERIC: self._recover_missing_directory,
            EXIT_MISUSE: self._recover_permission,
            EXIT_NOT_EXECUTABLE: self._recover_not_executable,
            EXIT_NOT_FOUND: self._recover_not_found,
        }
        self.failures: list[RecoveryAttemptFailure] = []

    def attempt(self, exit_code: int, context: FailureContext | None) -> bool:
        """Try the remedy registered for ``exit_code`` once.

        Returns:
            True only if the remedy (and its retry, where there is one)
            succeeded.
        """
        if not self.enabled:
            logger.debug("Error recovery disabled; exit code %d not handled", exit_code)
            return False
        if context is None:
            context = FailureContext()
        if context.recovery_attempted:
            logger.debug("Recovery already attempted for %s", context.command or "failure")
            return False
        context.recovery_attempted = True

        logger.info("Attempting error recovery for exit code %d", exit_code)
        handler = self._handlers.get(exit_code)
        recovered = handler(context) if handler else False

        if recovered:
            logger.info("Recovered from exit code %d", exit_code)
        else:
            logger.warning("Error recovery failed for exit code %d", exit_code)
            self.failures.append(
                RecoveryAttemptFailure(
                    exit_code=exit_code,
                    reason="no remedy" if handler is None else handler.__name__.lstrip("_"),
                )
            )
        return recovered

    # ── Remedies ────────────────────────────────────────────────

    def _recover_missing_directory(self, context: FailureContext) -> bool:
        if context.kind not in MISSING_DIRECTORY_KINDS or not context.target_path:
            return False

        target = Path(context.target_path)
        missing = target if context.kind == OperationKind.CHDIR else target.parent
        logger.info("Attempting to create parent directories for: %s", target)
        try:
            missing.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Cannot create %s: %s", missing, e)
            return False

        if context.retry is None:
            return True
        return _retry_once(context.retry)

    def _recover_permission(self, context: FailureContext) -> bool:
        if not context.permission_denied:
            return False
        logger.info("Permission denied - checking if elevation is available")
        if context.retry_elevated is None or not self._elevation_available():
            logger.info("No elevated-privilege path for: %s", context.command)
            return False
        logger.info("Retrying with elevation: %s", context.command)
        return _retry_once(context.retry_elevated)

    def _recover_not_executable(self, context: FailureContext) -> bool:
        logger.info("Command not executable - attempting to fix permissions")
        if not context.target_path or context.retry is None:
            return False
        target = Path(context.target_path)
        if not target.is_file():
            return False
        try:
            mode = target.stat().st_mode
            os.chmod(target, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            logger.warning("Cannot make %s executable: %s", target, e)
            return False
        logger.info("Fixed permissions, retrying command")
        return _retry_once(context.retry)

    def _recover_not_found(self, context: FailureContext) -> bool:
        logger.warning("Command not found - cannot auto-recover")
        return False


def _retry_once(retry: Callable[[], object]) -> bool:
    outcome = run_operation(retry)
    return outcome.ok and outcome.exit_code == 0

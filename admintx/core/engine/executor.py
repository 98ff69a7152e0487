"""
Command executor — run one operation and report how it went.

The executor is the engine's single point of execution.  It runs an
operation once, captures its status and output, emits exactly one
log entry at INFO or above, and returns an ``Outcome``.  Apart from
its own counters and dry-run plan it touches no shared state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from admintx.core.engine.operation import Operation, describe_operation, run_operation
from admintx.core.models.outcome import Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedOperation:
    """An operation a dry run skipped."""

    number: int
    description: str
    command: str

    def to_dict(self) -> dict[str, Any]:
        return {"number": self.number, "description": self.description, "command": self.command}


class CommandExecutor:
    """Execute operations with allow-failure and dry-run semantics.

    Args:
        dry_run: Log what would run and report success without
            invoking anything.  Skipped operations are kept, in
            order, in ``planned``.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.executed = 0
        self.planned: list[PlannedOperation] = []

    def execute(
        self,
        operation: Operation,
        description: str = "Executing command",
        allow_failure: bool = False,
    ) -> Outcome:
        """Run ``operation`` once.

        Returns:
            ``ok=True`` on exit 0, or on a non-zero exit when
            ``allow_failure`` is set (``tolerated=True``, real
            ``exit_code`` kept).  Otherwise ``ok=False`` carrying the
            status code and captured output.
        """
        if self.dry_run:
            planned = PlannedOperation(
                number=len(self.planned) + 1,
                description=description,
                command=describe_operation(operation),
            )
            self.planned.append(planned)
            logger.info("[DRY-RUN] Would execute: %s (%s)", description, planned.command)
            return Outcome.success(description=description, dry_run=True)

        logger.debug("Executing: %s", description)
        self.executed += 1
        outcome = run_operation(operation)

        if outcome.exit_code == 0:
            logger.info("%s completed successfully", description)
            return replace(outcome, ok=True, description=description)

        if allow_failure:
            logger.warning(
                "%s failed with exit code %d; continuing (allow_failure)",
                description,
                outcome.exit_code,
            )
            return replace(outcome, ok=True, tolerated=True, description=description)

        if outcome.output:
            logger.error(
                "%s failed with exit code %d. Output: %s",
                description,
                outcome.exit_code,
                outcome.output,
            )
        else:
            logger.error("%s failed with exit code %d", description, outcome.exit_code)
        return replace(outcome, ok=False, description=description)

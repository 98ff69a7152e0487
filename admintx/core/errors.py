"""
Error taxonomy for the execution engine.

Routine step-to-step control flow never raises: every operation
returns an ``Outcome``.  The exceptions here exist for the single
top-level boundary (``FailureSupervisor.run``) and for load-time
validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admintx.core.models.outcome import Outcome


class StepFailure(Exception):
    """A non-retriable, non-allowed-to-fail operation returned non-zero.

    Raised by ``Session.require`` once a failure is known to be
    unresolved, and caught only at the supervisor boundary (or by a
    replaying ledger / enclosing transaction, which turn it back into
    an ``Outcome``).
    """

    def __init__(self, outcome: Outcome, *, handled: bool = False):
        self.outcome = outcome
        self.handled = handled
        label = outcome.description or "operation"
        super().__init__(f"{label} failed with exit code {outcome.exit_code}")

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code


class Terminated(BaseException):
    """Raised from the SIGTERM handler installed by the supervisor.

    Derives from ``BaseException`` like ``KeyboardInterrupt``, so no
    step, retry or compensating action can absorb it as a failure.
    """

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(f"Terminated by signal {signum}")


class ConfigError(Exception):
    """Raised when settings or a task file are invalid or missing."""


@dataclass(frozen=True)
class RollbackActionFailure:
    """A compensating action that failed during replay.

    Recorded, never raised: replay always continues with the next
    (lower) index.
    """

    index: int
    description: str
    exit_code: int
    output: str = ""


@dataclass(frozen=True)
class RecoveryAttemptFailure:
    """The recovery classifier could not resolve a failure."""

    exit_code: int
    reason: str

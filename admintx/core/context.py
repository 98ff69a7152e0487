"""
Session — the explicit per-invocation context.

One ``Session`` is created at the top of each invocation and owns
everything that used to be process-wide: the rollback ledger, the
error counter and the error log.  Every component gets its
collaborators from here, so tests and library callers can run
isolated sessions side by side.

Script-facing API::

    def rotate(session: Session) -> None:
        out = session.execute(["install", "-d", "/srv/app/archive"], "Create archive dir")
        session.require(out)
        session.register_rollback(["rmdir", "/srv/app/archive"], "Remove archive dir")

        result = session.transaction("swap-config", [
            Step(["cp", "app.conf.new", "/etc/app.conf"], undo=["cp", "app.conf.bak", "/etc/app.conf"]),
            Step(["systemctl", "reload", "app"]),
        ])
        session.require(result)

    exit_code = Session(settings).run(rotate)
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from collections.abc import Callable, Iterable
from typing import Any

from admintx.adapters.shell import privileges
from admintx.core.engine.executor import CommandExecutor, PlannedOperation
from admintx.core.engine.ledger import RollbackLedger
from admintx.core.engine.operation import Operation, coerce_result
from admintx.core.engine.recovery import RecoveryClassifier
from admintx.core.engine.retry import RetryScheduler
from admintx.core.engine.supervisor import FailureSupervisor, SupervisorVerdict
from admintx.core.engine.transaction import StepLike, TransactionCoordinator
from admintx.core.errors import StepFailure
from admintx.core.models.outcome import Outcome
from admintx.core.models.settings import Settings
from admintx.core.models.transaction import TransactionResult
from admintx.core.persistence.error_log import ErrorLogWriter

logger = logging.getLogger(__name__)


class Session:
    """Wire one set of engine components together.

    Args:
        settings: Runtime settings (defaults if None).
        error_log: Error log writer; built from settings if None.
        sleep: Blocking sleep used for retry backoff.
        elevation_available: Privilege probe for the recovery classifier.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        error_log: ErrorLogWriter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        elevation_available: Callable[[], bool] = privileges.elevation_available,
    ):
        self.settings = settings or Settings()
        self.ledger = RollbackLedger()
        self.executor = CommandExecutor(dry_run=self.settings.dry_run)
        self.retrier = RetryScheduler(self.executor, sleep=sleep)
        self.classifier = RecoveryClassifier(
            enabled=self.settings.recovery_enabled,
            elevation_available=elevation_available,
        )
        self.transactions = TransactionCoordinator(self.ledger, self.executor, self.retrier)
        self.error_log = error_log or ErrorLogWriter(self.settings.resolve_error_log())
        self.supervisor = FailureSupervisor(self.ledger, self.classifier, self.error_log)

    # ── Counters ────────────────────────────────────────────────

    @property
    def error_count(self) -> int:
        return self.supervisor.error_count

    @property
    def rollback_failures(self) -> int:
        """Compensating actions that failed anywhere in this session."""
        return len(self.ledger.failures)

    @property
    def dry_run(self) -> bool:
        return self.executor.dry_run

    @property
    def planned(self) -> list[PlannedOperation]:
        """Operations a dry run skipped, in the order they came up."""
        return list(self.executor.planned)

    def summary(self) -> dict[str, Any]:
        return {
            "total_errors": self.supervisor.error_count,
            "last_error": self.supervisor.last_error,
            "last_error_code": self.supervisor.last_error_code,
            "rollback_failures": self.rollback_failures,
            "pending_rollback": len(self.ledger),
        }

    # ── Steps ───────────────────────────────────────────────────

    def execute(
        self,
        operation: Operation,
        description: str = "Executing command",
        allow_failure: bool = False,
    ) -> Outcome:
        return self.executor.execute(operation, description, allow_failure)

    def retry(
        self,
        operation: Operation,
        description: str = "Operation",
        max_attempts: int | None = None,
        initial_delay: float | None = None,
    ) -> Outcome:
        """Retry with the session's default policy unless overridden."""
        defaults = self.settings.retry
        return self.retrier.run(
            max_attempts if max_attempts is not None else defaults.max_attempts,
            initial_delay if initial_delay is not None else defaults.initial_delay,
            operation,
            description,
        )

    def register_rollback(self, action: Any, description: str = "Rollback action") -> int:
        return self.ledger.register(action, description)

    def transaction(self, name: str, steps: Iterable[StepLike]) -> TransactionResult:
        return self.transactions.run(name, steps)

    # ── Failure handling ────────────────────────────────────────

    def require(self, result: Outcome | TransactionResult) -> Outcome:
        """Insist that a step succeeded.

        Inside a transaction a failure is raised as ``StepFailure`` for
        the enclosing transaction to contain.  Outside, it goes to the
        supervisor: a resolved failure returns a successful outcome, an
        escalated one raises ``StepFailure`` towards ``run``.
        """
        outcome = coerce_result(result)
        if outcome.ok:
            return outcome

        if self.transactions.depth > 0:
            raise StepFailure(outcome)

        verdict = self.supervisor.handle(outcome)
        if verdict.resolved:
            return replace(outcome, ok=True, exit_code=0, tolerated=False)
        raise StepFailure(outcome, handled=verdict.escalated)

    def handle_failure(self, outcome: Outcome) -> SupervisorVerdict:
        """Hand a failed outcome straight to the supervisor."""
        return self.supervisor.handle(outcome)

    def run(self, script: Callable[[Session], Any], handle_signals: bool = False) -> int:
        """Run ``script(self)`` under the supervisor; return the exit status."""
        return self.supervisor.run(lambda: script(self), handle_signals=handle_signals)

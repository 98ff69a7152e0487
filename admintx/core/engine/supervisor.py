"""
Failure supervisor — the top-level handler for unresolved failures.

State machine per failure occurrence::

    ARMED ──failure──▶ HANDLING ──recovered──▶ RESOLVED ──▶ ARMED
                          │
                          └─not recovered──▶ (DISARMED: full unwind) ──▶ ESCALATED ──▶ ARMED

Handling a failure writes an ``ErrorRecord`` to the error log, bumps
the session's error counter and asks the recovery classifier for a
remedy.  If none works, the whole ledger is replayed with
interception disarmed, and the original exit status propagates.

``run`` is the only place where exceptions become exit statuses.
"""

from __future__ import annotations

import logging
import signal
import threading
import traceback
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from types import TracebackType
from typing import Any

from admintx.core.engine.ledger import RollbackLedger
from admintx.core.engine.recovery import RecoveryClassifier
from admintx.core.errors import StepFailure, Terminated
from admintx.core.models.error_record import ErrorRecord
from admintx.core.models.outcome import Outcome
from admintx.core.persistence.error_log import ErrorLogWriter

logger = logging.getLogger(__name__)

EXIT_SIGINT = 130
_MAX_STACK_FRAMES = 12


class SupervisorState(StrEnum):
    """Supervisor states."""

    ARMED = "armed"
    HANDLING = "handling"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    DISARMED = "disarmed"


@dataclass
class SupervisorVerdict:
    """How one failure occurrence was resolved."""

    state: SupervisorState
    exit_code: int
    record: ErrorRecord | None = None
    rolled_back: int = 0
    rollback_failures: int = 0

    @property
    def resolved(self) -> bool:
        return self.state == SupervisorState.RESOLVED

    @property
    def escalated(self) -> bool:
        return self.state == SupervisorState.ESCALATED

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "exit_code": self.exit_code,
            "sequence_number": self.record.sequence_number if self.record else None,
            "operation_text": self.record.operation_text if self.record else "",
            "rolled_back": self.rolled_back,
            "rollback_failures": self.rollback_failures,
        }


class FailureSupervisor:
    """Handle failures that nothing closer to the step resolved."""

    def __init__(
        self,
        ledger: RollbackLedger,
        classifier: RecoveryClassifier,
        error_log: ErrorLogWriter,
    ):
        self._ledger = ledger
        self._classifier = classifier
        self._error_log = error_log
        self._state = SupervisorState.ARMED
        self.error_count = 0
        self.last_error = ""
        self.last_error_code = 0
        self.verdicts: list[SupervisorVerdict] = []

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def armed(self) -> bool:
        return self._state == SupervisorState.ARMED

    # ── Handling ────────────────────────────────────────────────

    def handle(self, outcome: Outcome, call_stack: list[str] | None = None) -> SupervisorVerdict:
        """Record a failed outcome, try recovery, unwind if unresolved."""
        if not self.armed:
            logger.debug(
                "Supervisor %s; not handling: %s", self._state.value, outcome.description
            )
            return SupervisorVerdict(state=SupervisorState.DISARMED, exit_code=outcome.exit_code)

        self._state = SupervisorState.HANDLING
        try:
            verdict = self._handle(outcome, call_stack)
        finally:
            self._state = SupervisorState.ARMED
        self.verdicts.append(verdict)
        return verdict

    def _handle(self, outcome: Outcome, call_stack: list[str] | None) -> SupervisorVerdict:
        self.error_count += 1
        operation_text = _operation_text(outcome)
        self.last_error = operation_text
        self.last_error_code = outcome.exit_code

        record = ErrorRecord(
            sequence_number=self.error_count,
            exit_code=outcome.exit_code,
            operation_text=operation_text,
            call_stack=call_stack if call_stack is not None else _capture_stack(),
        )
        logger.error(record.summary())
        self._error_log.append(record)

        if self._classifier.attempt(outcome.exit_code, outcome.context):
            logger.info("Error #%d resolved by recovery", record.sequence_number)
            return SupervisorVerdict(
                state=SupervisorState.RESOLVED, exit_code=0, record=record
            )

        rolled_back, failures = self._unwind()

        logger.error(
            "Error #%d escalated with exit code %d", record.sequence_number, outcome.exit_code
        )
        return SupervisorVerdict(
            state=SupervisorState.ESCALATED,
            exit_code=outcome.exit_code,
            record=record,
            rolled_back=rolled_back,
            rollback_failures=failures,
        )

    def _unwind(self) -> tuple[int, int]:
        """Replay the whole ledger with interception disarmed."""
        pending = len(self._ledger)
        if not pending:
            return 0, 0
        logger.warning("Executing rollback due to error...")
        previous = self._state
        self._state = SupervisorState.DISARMED
        try:
            failures = self._ledger.replay(0, pending - 1)
        finally:
            self._state = previous
        return pending, failures

    # ── Boundary ────────────────────────────────────────────────

    def run(self, main: Callable[[], Any], handle_signals: bool = False) -> int:
        """Run ``main`` and turn its fate into a process exit status.

        - normal completion: remaining rollback entries are dropped, 0.
        - ``StepFailure``: its status (handled here if nobody did yet).
        - interrupt / termination / any other exception: handled as an
          unresolved failure (full unwind), status 130 / 128+N / 1.
        """
        try:
            with self._signals(handle_signals):
                main()
        except StepFailure as e:
            if not e.handled:
                return self._at_boundary(e.outcome, e.__traceback__)
            return e.exit_code
        except KeyboardInterrupt as e:
            return self._uncaught(EXIT_SIGINT, "Interrupted (SIGINT)", e.__traceback__)
        except Terminated as e:
            return self._uncaught(128 + e.signum, str(e), e.__traceback__)
        except Exception as e:
            logger.debug("Unhandled exception in script", exc_info=True)
            return self._uncaught(1, f"Unhandled {type(e).__name__}: {e}", e.__traceback__)

        if len(self._ledger):
            logger.debug("Run completed; clearing %d rollback action(s)", len(self._ledger))
            self._ledger.clear(0)
        return 0

    def _uncaught(self, exit_code: int, text: str, tb: TracebackType | None) -> int:
        return self._at_boundary(Outcome.failure(exit_code=exit_code, description=text), tb)

    def _at_boundary(self, outcome: Outcome, tb: TracebackType | None) -> int:
        """Handle a failure that already stopped the script.

        Recovery may still fix the failed operation, but the rest of
        the script never ran: the ledger is unwound and the original
        status returned, never 0.
        """
        verdict = self.handle(outcome, _stack_from(tb))
        if not verdict.resolved:
            return verdict.exit_code
        logger.warning(
            "Error #%d recovered after the script had stopped; unwinding",
            verdict.record.sequence_number if verdict.record else 0,
        )
        self._unwind()
        return outcome.exit_code or 1

    @contextmanager
    def _signals(self, enabled: bool) -> Iterator[None]:
        """Map SIGTERM onto ``Terminated`` for the duration of a run."""
        if not enabled or threading.current_thread() is not threading.main_thread():
            yield
            return

        def _on_term(signum: int, _frame: Any) -> None:
            raise Terminated(signum)

        previous = signal.signal(signal.SIGTERM, _on_term)
        try:
            yield
        finally:
            signal.signal(signal.SIGTERM, previous)


def _operation_text(outcome: Outcome) -> str:
    description = outcome.description
    command = outcome.context.command if outcome.context else ""
    if command and description and command != description:
        return f"{description}: {command}"
    return description or command


def _capture_stack() -> list[str]:
    frames = traceback.extract_stack()[:-3]
    return [f"{f.name} ({f.filename}:{f.lineno})" for f in frames[-_MAX_STACK_FRAMES:]]


def _stack_from(tb: TracebackType | None) -> list[str]:
    if tb is None:
        return _capture_stack()
    frames = traceback.extract_tb(tb)
    return [f"{f.name} ({f.filename}:{f.lineno})" for f in frames[-_MAX_STACK_FRAMES:]]

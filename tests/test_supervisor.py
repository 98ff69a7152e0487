"""
Tests for the failure supervisor and the session boundary.
"""

import os
import signal
import threading
from pathlib import Path

import pytest

from admintx.core.engine.operation import run_operation
from admintx.core.engine.supervisor import SupervisorState
from admintx.core.engine.transaction import Step
from admintx.core.errors import StepFailure, Terminated
from admintx.core.models.outcome import FailureContext, OperationKind, Outcome


def _mark(calls: list[str], name: str, result=0):
    def _op():
        calls.append(name)
        return result

    return _op


# ── handle() ─────────────────────────────────────────────────────────


class TestHandle:
    def test_recovered_failure_resolves(self, session, tmp_path: Path):
        target = tmp_path / "made" / "by" / "recovery"
        outcome = Outcome.failure(
            exit_code=1,
            description="Create dir",
            context=FailureContext(kind=OperationKind.MKDIR, target_path=str(target)),
        )

        verdict = session.supervisor.handle(outcome)

        assert verdict.state == SupervisorState.RESOLVED
        assert verdict.resolved
        assert verdict.exit_code == 0
        assert session.error_count == 1
        assert target.parent.is_dir()
        assert session.supervisor.armed

    def test_unrecovered_failure_unwinds_everything(self, session, calls):
        session.register_rollback(_mark(calls, "undoA"), "A")
        session.register_rollback(_mark(calls, "undoB"), "B")

        verdict = session.supervisor.handle(Outcome.failure(exit_code=127, description="frob"))

        assert verdict.escalated
        assert verdict.exit_code == 127
        assert verdict.rolled_back == 2
        assert calls == ["undoB", "undoA"]
        assert len(session.ledger) == 0
        assert session.supervisor.armed

    def test_empty_ledger_still_escalates(self, session):
        verdict = session.supervisor.handle(Outcome.failure(exit_code=3))
        assert verdict.escalated
        assert verdict.rolled_back == 0

    def test_record_written_to_error_log(self, session):
        session.supervisor.handle(Outcome.failure(exit_code=4, description="Restart app"))
        session.supervisor.handle(Outcome.failure(exit_code=5, description="Reload app"))

        records = session.error_log.read_records()
        assert [r.sequence_number for r in records] == [1, 2]
        assert records[0].exit_code == 4
        assert records[1].operation_text == "Reload app"
        assert records[0].call_stack
        assert session.supervisor.last_error == "Reload app"
        assert session.supervisor.last_error_code == 5

    def test_operation_text_includes_command(self, session):
        outcome = Outcome.failure(
            exit_code=1,
            description="Rotate logs",
            context=FailureContext(command="/usr/local/bin/rotate"),
        )
        verdict = session.supervisor.handle(outcome)
        assert verdict.record.operation_text == "Rotate logs: /usr/local/bin/rotate"

    def test_rollback_failures_reported(self, session, calls):
        session.register_rollback(_mark(calls, "ok"), "ok")
        session.register_rollback(lambda: 1, "broken")

        verdict = session.supervisor.handle(Outcome.failure(exit_code=9))

        assert verdict.rollback_failures == 1
        assert calls == ["ok"]
        assert session.rollback_failures == 1

    def test_failures_during_unwind_are_not_rehandled(self, session, calls):
        def _undo_that_fails_loudly():
            calls.append("undo")
            session.require(Outcome.failure(exit_code=2, description="nested"))

        session.register_rollback(_undo_that_fails_loudly, "loud")

        verdict = session.supervisor.handle(Outcome.failure(exit_code=6))

        assert verdict.escalated
        assert calls == ["undo"]
        assert session.error_count == 1
        assert verdict.rollback_failures == 1

    def test_recovery_disabled(self, settings, error_log, tmp_path: Path):
        from admintx.core.context import Session

        settings = settings.model_copy(update={"recovery_enabled": False})
        session = Session(settings, error_log=error_log, sleep=lambda s: None)
        target = tmp_path / "not" / "created"
        outcome = Outcome.failure(
            exit_code=1,
            context=FailureContext(kind=OperationKind.MKDIR, target_path=str(target)),
        )
        assert session.supervisor.handle(outcome).escalated
        assert not target.parent.exists()


# ── run() ────────────────────────────────────────────────────────────


class TestRun:
    def test_clean_run_clears_ledger_without_running(self, session, calls):
        def _script(s):
            s.register_rollback(_mark(calls, "undo"), "undo")

        assert session.run(_script) == 0
        assert calls == []
        assert len(session.ledger) == 0

    def test_escalated_failure_exit_status(self, session, calls):
        def _script(s):
            s.register_rollback(_mark(calls, "undo"), "undo")
            s.require(s.execute(lambda: 42, "Doomed"))
            calls.append("unreachable")

        assert session.run(_script) == 42
        assert calls == ["undo"]
        assert session.error_count == 1

    def test_resolved_failure_continues(self, session, calls, tmp_path: Path):
        target = tmp_path / "parent" / "child"

        def _script(s):
            s.require(
                Outcome.failure(
                    exit_code=1,
                    context=FailureContext(kind=OperationKind.WRITE, target_path=str(target)),
                )
            )
            calls.append("continued")

        assert session.run(_script) == 0
        assert calls == ["continued"]
        assert session.error_count == 1

    def test_unhandled_step_failure(self, session, calls):
        def _script(s):
            s.register_rollback(_mark(calls, "undo"), "undo")
            raise StepFailure(Outcome.failure(exit_code=12))

        assert session.run(_script) == 12
        assert calls == ["undo"]
        assert session.error_count == 1

    def test_step_failure_recovered_after_stop_still_fails(self, session, calls, tmp_path: Path):
        target = tmp_path / "late" / "recovery"

        def _script(s):
            s.register_rollback(_mark(calls, "undo"), "undo")
            raise StepFailure(
                Outcome.failure(
                    exit_code=1,
                    context=FailureContext(kind=OperationKind.WRITE, target_path=str(target)),
                )
            )
            calls.append("unreachable")

        assert session.run(_script) == 1
        assert target.parent.is_dir()
        assert calls == ["undo"]
        assert len(session.ledger) == 0
        assert session.supervisor.verdicts[-1].state == SupervisorState.RESOLVED

    def test_uncaught_exception(self, session, calls):
        def _script(s):
            s.register_rollback(_mark(calls, "undo"), "undo")
            raise RuntimeError("bug")

        assert session.run(_script) == 1
        assert calls == ["undo"]
        assert "RuntimeError" in session.supervisor.last_error

    def test_keyboard_interrupt(self, session, calls):
        def _script(s):
            s.register_rollback(_mark(calls, "undo"), "undo")
            raise KeyboardInterrupt

        assert session.run(_script) == 130
        assert calls == ["undo"]

    def test_sigterm_maps_to_full_unwind(self, session, calls):
        def _script(s):
            s.register_rollback(_mark(calls, "undoA"), "A")
            s.register_rollback(_mark(calls, "undoB"), "B")
            os.kill(os.getpid(), signal.SIGTERM)
            calls.append("unreachable")

        previous = signal.getsignal(signal.SIGTERM)
        assert session.run(_script, handle_signals=True) == 128 + signal.SIGTERM
        assert calls == ["undoB", "undoA"]
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_sigterm_during_tolerated_shell_step(self, session, calls):
        timer = threading.Timer(0.3, os.kill, (os.getpid(), signal.SIGTERM))

        def _script(s):
            s.register_rollback(_mark(calls, "undo"), "undo")
            timer.start()
            s.execute("sleep 5", "Long sleep", allow_failure=True)
            calls.append("after")

        try:
            status = session.run(_script, handle_signals=True)
        finally:
            timer.cancel()

        assert status == 128 + signal.SIGTERM
        assert calls == ["undo"]

    def test_termination_is_not_an_operation_failure(self):
        def _op():
            raise Terminated(signal.SIGTERM)

        with pytest.raises(Terminated):
            run_operation(_op)


# ── Session.require ──────────────────────────────────────────────────


class TestRequire:
    def test_success_passes_through(self, session):
        out = session.require(Outcome.success(output="fine"))
        assert out.output == "fine"

    def test_resolved_failure_returns_success(self, session, tmp_path: Path):
        target = tmp_path / "fixed" / "file"
        failed = Outcome.failure(
            exit_code=1,
            output="No such file or directory",
            context=FailureContext(kind=OperationKind.WRITE, target_path=str(target)),
        )

        out = session.require(failed)

        assert out.ok
        assert out.exit_code == 0
        assert not out.tolerated
        assert out.succeeded_for_real
        assert session.error_count == 1

    def test_outside_transaction_escalates(self, session, calls):
        session.register_rollback(_mark(calls, "undo"), "undo")
        with pytest.raises(StepFailure) as exc:
            session.require(Outcome.failure(exit_code=8))
        assert exc.value.handled
        assert exc.value.exit_code == 8
        assert calls == ["undo"]

    def test_inside_transaction_is_contained(self, session, calls):
        session.register_rollback(_mark(calls, "outer-undo"), "outer")

        def _step():
            session.require(Outcome.failure(exit_code=3))

        result = session.transaction(
            "t", [Step(_mark(calls, "s1"), undo=_mark(calls, "undo-s1")), _step]
        )

        assert not result.ok
        assert result.exit_code == 3
        assert calls == ["s1", "undo-s1"]
        assert len(session.ledger) == 1
        assert session.error_count == 0

    def test_failed_transaction_result_escalates(self, session, calls):
        def _script(s):
            s.register_rollback(_mark(calls, "outer-undo"), "outer")
            result = s.transaction("t", [lambda: 5])
            s.require(result)

        assert session.run(_script) == 5
        assert calls == ["outer-undo"]

    def test_summary(self, session):
        session.supervisor.handle(Outcome.failure(exit_code=3, description="x"))
        summary = session.summary()
        assert summary["total_errors"] == 1
        assert summary["last_error"] == "x"
        assert summary["last_error_code"] == 3
        assert summary["pending_rollback"] == 0

"""
Tests for domain models — Outcome, FailureContext, TransactionResult.
"""

from admintx.core.errors import StepFailure
from admintx.core.models.outcome import FailureContext, OperationKind, Outcome
from admintx.core.models.transaction import TransactionResult, TransactionStatus


class TestOutcome:
    def test_success(self):
        out = Outcome.success(output="done")
        assert out.ok
        assert not out.failed
        assert out.exit_code == 0
        assert out.succeeded_for_real

    def test_failure_forces_nonzero(self):
        assert Outcome.failure(exit_code=0).exit_code == 1

    def test_tolerated_is_not_real_success(self):
        out = Outcome(ok=True, exit_code=3, tolerated=True)
        assert out.ok
        assert not out.succeeded_for_real

    def test_to_dict(self):
        ctx = FailureContext(kind=OperationKind.MKDIR, command="mkdir /x", target_path="/x")
        data = Outcome.failure(exit_code=2, context=ctx).to_dict()
        assert data["exit_code"] == 2
        assert data["context"]["kind"] == "mkdir"
        assert data["context"]["target_path"] == "/x"


class TestTransactionResult:
    def test_committed(self):
        result = TransactionResult(name="t", status=TransactionStatus.COMMITTED, steps_total=2)
        assert result.ok
        assert result.clean
        assert result.to_outcome().ok

    def test_rolled_back_with_residue(self):
        result = TransactionResult(
            name="t",
            status=TransactionStatus.ROLLED_BACK,
            failed_step="step",
            exit_code=4,
            rollback_failures=2,
        )
        assert not result.ok
        assert not result.clean
        out = result.to_outcome()
        assert out.exit_code == 4
        assert out.description == "Transaction t"
        assert result.to_dict()["status"] == "rolled_back"


class TestStepFailure:
    def test_message_and_status(self):
        err = StepFailure(Outcome.failure(exit_code=9, description="Reload"))
        assert err.exit_code == 9
        assert not err.handled
        assert "Reload failed with exit code 9" in str(err)

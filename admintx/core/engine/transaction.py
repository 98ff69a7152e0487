"""
Transaction coordinator — group steps behind a ledger window.

    floor = len(ledger)
    run steps in order
      └─ first failure → replay [floor, tail] newest-first → rolled_back
    all ok → clear [floor, tail] → committed

Committed transactions drop their undo entries so a later, unrelated
failure never unwinds work that is already durable.  Transactions
nest: an inner one only ever touches entries at or above its own
floor.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any, Union

from admintx.core.engine.executor import CommandExecutor
from admintx.core.engine.ledger import RollbackLedger
from admintx.core.engine.operation import Operation, describe_operation
from admintx.core.engine.retry import RetryPolicy, RetryScheduler
from admintx.core.models.outcome import Outcome
from admintx.core.models.transaction import (
    Transaction,
    TransactionResult,
    TransactionStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class Step:
    """One step of a transaction.

    Attributes:
        operation: What to run.
        description: Label for logs; defaults to the command text.
        allow_failure: Tolerate a non-zero exit.
        undo: Compensating action registered once the step has really
            succeeded (not in dry-run, not a tolerated failure).
        undo_description: Label for the rollback entry.
        retry: Run through the retry scheduler with this policy.
    """

    operation: Operation
    description: str = ""
    allow_failure: bool = False
    undo: Any = None
    undo_description: str = ""
    retry: RetryPolicy | None = None

    @property
    def label(self) -> str:
        return self.description or describe_operation(self.operation)


StepLike = Union[Step, Operation]


class TransactionCoordinator:
    """Run batches of steps with scoped rollback."""

    def __init__(
        self,
        ledger: RollbackLedger,
        executor: CommandExecutor,
        retry: RetryScheduler | None = None,
    ):
        self._ledger = ledger
        self._executor = executor
        self._retry = retry
        self._depth = 0

    @property
    def depth(self) -> int:
        """How many transactions are currently running (nesting level)."""
        return self._depth

    def run(self, name: str, steps: Iterable[StepLike]) -> TransactionResult:
        """Execute ``steps`` as one transaction.

        Returns:
            A committed result, or a rolled-back result naming the
            failed step, its exit status and how many compensating
            actions failed.
        """
        steps = [s if isinstance(s, Step) else Step(operation=s) for s in steps]
        txn = Transaction(name=name, floor=len(self._ledger))
        logger.info("Starting transaction: %s (%d steps)", name, len(steps))

        txn.status = TransactionStatus.RUNNING
        self._depth += 1
        try:
            completed = 0
            for step in steps:
                outcome = self._execute_step(step)
                if outcome.failed:
                    return self._roll_back(txn, step, outcome, len(steps), completed)
                if step.undo is not None and outcome.succeeded_for_real:
                    self._ledger.register(
                        step.undo, step.undo_description or f"Undo: {step.label}"
                    )
                completed += 1
        finally:
            self._depth -= 1

        self._ledger.clear(txn.floor)
        txn.status = TransactionStatus.COMMITTED
        logger.info("Transaction completed successfully: %s", name)
        return TransactionResult(
            name=name,
            status=txn.status,
            steps_total=len(steps),
            steps_completed=completed,
        )

    def _execute_step(self, step: Step) -> Outcome:
        if step.retry is not None and self._retry is not None:
            outcome = self._retry.run(
                step.retry.max_attempts,
                step.retry.initial_delay,
                step.operation,
                step.label,
            )
            if outcome.failed and step.allow_failure:
                return replace(outcome, ok=True, tolerated=True)
            return outcome
        return self._executor.execute(step.operation, step.label, step.allow_failure)

    def _roll_back(
        self,
        txn: Transaction,
        step: Step,
        outcome: Outcome,
        total: int,
        completed: int,
    ) -> TransactionResult:
        logger.error("Transaction %s failed at: %s", txn.name, step.label)

        ceiling = len(self._ledger) - 1
        pending = ceiling - txn.floor + 1
        failures = 0
        if pending > 0:
            logger.warning("Rolling back %d operation(s)", pending)
            failures = self._ledger.replay(txn.floor, ceiling)

        txn.status = TransactionStatus.ROLLED_BACK
        logger.warning(
            "Transaction %s rolled back (%d entr%s, %d rollback failure(s))",
            txn.name,
            max(pending, 0),
            "y" if pending == 1 else "ies",
            failures,
        )
        return TransactionResult(
            name=txn.name,
            status=txn.status,
            steps_total=total,
            steps_completed=completed,
            failed_step=step.label,
            exit_code=outcome.exit_code,
            output=outcome.output,
            rolled_back=max(pending, 0),
            rollback_failures=failures,
        )

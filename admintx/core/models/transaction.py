"""
Transaction models — the coordinator's bookkeeping.

A ``Transaction`` lives only while the coordinator runs it; the
caller receives the ``TransactionResult``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from admintx.core.models.outcome import Outcome


class TransactionStatus(StrEnum):
    """Transaction lifecycle states."""

    INIT = "init"
    RUNNING = "running"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Transaction:
    """A bounded group of steps with its own ledger window.

    ``floor`` is the ledger length captured when the transaction
    started; nothing below it belongs to this transaction.
    """

    name: str
    floor: int
    status: TransactionStatus = TransactionStatus.INIT


@dataclass
class TransactionResult:
    """What a resolved transaction reports to its caller."""

    name: str
    status: TransactionStatus
    steps_total: int = 0
    steps_completed: int = 0
    failed_step: str | None = None
    exit_code: int = 0
    output: str = ""
    rolled_back: int = 0
    rollback_failures: int = 0

    @property
    def ok(self) -> bool:
        return self.status == TransactionStatus.COMMITTED

    @property
    def clean(self) -> bool:
        """True unless a compensating action failed (residual state)."""
        return self.rollback_failures == 0

    def to_outcome(self) -> Outcome:
        """Collapse the result into an ``Outcome`` for an enclosing scope."""
        description = f"Transaction {self.name}"
        if self.ok:
            return Outcome.success(description=description)
        return Outcome.failure(
            exit_code=self.exit_code,
            output=self.output,
            description=description,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "steps_total": self.steps_total,
            "steps_completed": self.steps_completed,
            "failed_step": self.failed_step,
            "exit_code": self.exit_code,
            "rolled_back": self.rolled_back,
            "rollback_failures": self.rollback_failures,
        }

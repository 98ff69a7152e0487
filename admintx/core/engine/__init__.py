"""
Transactional execution engine.

Leaves first: executor → ledger → retry → recovery → transaction →
supervisor.  Components take their collaborators explicitly; the
``Session`` in ``admintx.core.context`` wires one set together per
invocation.
"""

from admintx.core.engine.executor import CommandExecutor
from admintx.core.engine.ledger import RollbackAction, RollbackLedger
from admintx.core.engine.operation import Operation, run_operation
from admintx.core.engine.recovery import RecoveryClassifier, is_recoverable_error
from admintx.core.engine.retry import RetryPolicy, RetryScheduler, RetryState
from admintx.core.engine.supervisor import (
    FailureSupervisor,
    SupervisorState,
    SupervisorVerdict,
)
from admintx.core.engine.transaction import Step, TransactionCoordinator

__all__ = [
    "CommandExecutor",
    "FailureSupervisor",
    "Operation",
    "RecoveryClassifier",
    "RetryPolicy",
    "RetryScheduler",
    "RetryState",
    "RollbackAction",
    "RollbackLedger",
    "Step",
    "SupervisorState",
    "SupervisorVerdict",
    "TransactionCoordinator",
    "is_recoverable_error",
    "run_operation",
]

"""
Domain models for the execution engine.

    from admintx.core.models import Outcome, FailureContext, ErrorRecord, TaskFile
"""

from admintx.core.models.error_record import ErrorRecord
from admintx.core.models.outcome import (
    MISSING_DIRECTORY_KINDS,
    FailureContext,
    OperationKind,
    Outcome,
)
from admintx.core.models.settings import Settings
from admintx.core.models.task import RetrySpec, TaskFile, TaskStep
from admintx.core.models.transaction import (
    Transaction,
    TransactionResult,
    TransactionStatus,
)

__all__ = [
    "MISSING_DIRECTORY_KINDS",
    # error_record.py
    "ErrorRecord",
    # outcome.py
    "FailureContext",
    "OperationKind",
    "Outcome",
    # task.py
    "RetrySpec",
    # settings.py
    "Settings",
    "TaskFile",
    "TaskStep",
    # transaction.py
    "Transaction",
    "TransactionResult",
    "TransactionStatus",
]

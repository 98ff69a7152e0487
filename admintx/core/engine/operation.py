"""
Operation normalisation — turn any opaque step into an ``Outcome``.

Steps, compensating actions and retried calls are opaque to the
engine.  Accepted shapes:

    - a zero-argument callable returning ``Outcome``, ``int`` (exit
      status), ``bool`` or ``None``
    - a ``ShellCommand``
    - a shell command string or an argv list/tuple

A callable that raises is reported as exit status 1 with the error
text as output; a ``StepFailure`` keeps the status it carries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any, Union

from admintx.adapters.shell.command import ShellCommand
from admintx.core.errors import StepFailure
from admintx.core.models.outcome import Outcome
from admintx.core.models.transaction import TransactionResult

logger = logging.getLogger(__name__)

Operation = Union[Callable[[], Any], ShellCommand, str, Sequence[str]]


def as_callable(operation: Operation) -> Callable[[], Any]:
    """Bind command descriptions to a ``ShellCommand``; pass callables through."""
    if isinstance(operation, str):
        return ShellCommand(operation)
    if isinstance(operation, (list, tuple)):
        return ShellCommand(list(operation))
    if not callable(operation):
        raise TypeError(f"Not an operation: {operation!r}")
    return operation


def run_operation(operation: Operation) -> Outcome:
    """Invoke an operation once and normalise its result."""
    func = as_callable(operation)
    try:
        result = func()
    except StepFailure as e:
        return replace(e.outcome, ok=False, exit_code=e.exit_code or 1)
    except Exception as e:
        logger.debug("Operation raised", exc_info=True)
        return Outcome.failure(exit_code=1, output=f"{type(e).__name__}: {e}")
    return coerce_result(result)


def describe_operation(operation: Operation) -> str:
    """Command text of an operation, for dry-run plans and logs."""
    if isinstance(operation, ShellCommand):
        return operation.text
    if isinstance(operation, str):
        return operation
    if isinstance(operation, (list, tuple)):
        return " ".join(str(part) for part in operation)
    return getattr(operation, "__name__", None) or repr(operation)


def coerce_result(result: Any) -> Outcome:
    """Map an operation's return value onto an ``Outcome``."""
    if isinstance(result, Outcome):
        if not result.ok and result.exit_code == 0:
            return replace(result, exit_code=1)
        if result.ok and result.exit_code != 0 and not result.tolerated:
            return replace(result, ok=False)
        return result
    if isinstance(result, TransactionResult):
        return result.to_outcome()
    if result is None or result is True:
        return Outcome.success()
    if result is False:
        return Outcome.failure(exit_code=1)
    if isinstance(result, int):
        if result == 0:
            return Outcome.success()
        return Outcome.failure(exit_code=result)
    return Outcome.failure(
        exit_code=1,
        output=f"Unsupported operation result: {type(result).__name__}",
    )

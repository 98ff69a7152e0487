"""
Outcome and FailureContext — the execution contract.

Every step, compensating action and retried call produces an
``Outcome``.  Operations never signal failure by raising: the
executor captures the status code and output here, and a failed
outcome may carry a typed ``FailureContext`` that the recovery
classifier matches on.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class OperationKind(StrEnum):
    """What a step does to the host, as far as recovery cares."""

    GENERIC = "generic"
    MKDIR = "mkdir"
    CHDIR = "chdir"
    WRITE = "write"
    EXECUTE = "execute"
    PACKAGE = "package"
    SERVICE = "service"
    ACCOUNT = "account"


# Kinds whose failure can stem from a missing parent directory
MISSING_DIRECTORY_KINDS = frozenset(
    {OperationKind.MKDIR, OperationKind.CHDIR, OperationKind.WRITE}
)


@dataclass
class FailureContext:
    """Structured description of a failed operation.

    ``retry`` and ``retry_elevated`` are bound callables that re-run
    the original operation once, plainly or with elevated privileges.
    ``recovery_attempted`` is set by the classifier so that the same
    failure occurrence is never remediated twice.
    """

    kind: OperationKind = OperationKind.GENERIC
    command: str = ""
    target_path: str | None = None
    permission_denied: bool = False
    needs_privilege: bool = False
    retry: Callable[[], Outcome] | None = None
    retry_elevated: Callable[[], Outcome] | None = None
    recovery_attempted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "command": self.command,
            "target_path": self.target_path,
            "permission_denied": self.permission_denied,
            "needs_privilege": self.needs_privilege,
            "recovery_attempted": self.recovery_attempted,
        }


@dataclass
class Outcome:
    """Result of running one operation.

    ``ok`` is what the caller is told; ``exit_code`` is the real
    status.  They differ when a failure was tolerated
    (``allow_failure``), which lets the retry scheduler judge the
    attempt itself.
    """

    ok: bool
    exit_code: int = 0
    output: str = ""
    description: str = ""
    tolerated: bool = False
    dry_run: bool = False
    attempts: int = 1
    context: FailureContext | None = field(default=None, repr=False)

    @property
    def failed(self) -> bool:
        return not self.ok

    @property
    def succeeded_for_real(self) -> bool:
        """Whether the operation actually ran and exited 0."""
        return self.exit_code == 0 and not self.dry_run

    @classmethod
    def success(cls, output: str = "", **kwargs: Any) -> Outcome:
        """Create a success outcome."""
        return cls(ok=True, exit_code=0, output=output, **kwargs)

    @classmethod
    def failure(cls, exit_code: int = 1, output: str = "", **kwargs: Any) -> Outcome:
        """Create a failure outcome (exit code is forced non-zero)."""
        return cls(ok=False, exit_code=exit_code or 1, output=output, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "exit_code": self.exit_code,
            "output": self.output,
            "description": self.description,
            "tolerated": self.tolerated,
            "dry_run": self.dry_run,
            "attempts": self.attempts,
            "context": self.context.to_dict() if self.context else None,
        }

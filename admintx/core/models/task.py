"""
Task file models — declarative administrative scripts.

A task file is YAML describing an ordered list of steps.  A step is
either a command (with an optional undo command) or a nested
transaction of further steps::

    name: provision-app-user
    retry:
      max_attempts: 3
      initial_delay: 1
    steps:
      - run: install -d -m 0750 /srv/app
        kind: mkdir
        target: /srv/app
        undo: rmdir /srv/app
      - transaction: account
        steps:
          - run: [useradd, --system, appsvc]
            undo: [userdel, appsvc]
            needs_sudo: true
          - run: [systemctl, enable, --now, app]
            undo: [systemctl, disable, --now, app]
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from admintx.core.models.outcome import OperationKind

# A shell string (run through ``sh -c``) or an argv list
Command = str | list[str]


class RetrySpec(BaseModel):
    """Bounded retry with exponential backoff."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)


class TaskStep(BaseModel):
    """A command step or a nested transaction."""

    model_config = ConfigDict(extra="forbid")

    run: Command | None = None
    description: str = ""
    undo: Command | None = None
    allow_failure: bool = False
    needs_sudo: bool = False
    kind: OperationKind = OperationKind.GENERIC
    target: str | None = None
    timeout: int = Field(default=300, gt=0)
    retry: RetrySpec | None = None

    transaction: str | None = None
    steps: list[TaskStep] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_shape(self) -> TaskStep:
        if (self.run is None) == (self.transaction is None):
            raise ValueError("a step needs exactly one of 'run' or 'transaction'")
        if self.transaction is not None:
            if not self.steps:
                raise ValueError(f"transaction '{self.transaction}' has no steps")
            if self.undo is not None or self.retry is not None:
                raise ValueError("'undo' and 'retry' apply to command steps only")
        elif self.steps:
            raise ValueError("'steps' is only valid on a transaction step")
        if isinstance(self.run, list) and not self.run:
            raise ValueError("'run' must not be an empty list")
        return self

    @property
    def is_transaction(self) -> bool:
        return self.transaction is not None

    @property
    def label(self) -> str:
        """Human-readable name used in logs and error records."""
        if self.description:
            return self.description
        if self.transaction is not None:
            return f"Transaction {self.transaction}"
        if isinstance(self.run, list):
            return " ".join(self.run)
        return self.run or ""

    def count_commands(self) -> int:
        if not self.is_transaction:
            return 1
        return sum(s.count_commands() for s in self.steps)


class TaskFile(BaseModel):
    """A whole administrative script."""

    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    retry: RetrySpec | None = None
    steps: list[TaskStep] = Field(default_factory=list)

    @property
    def command_count(self) -> int:
        return sum(s.count_commands() for s in self.steps)

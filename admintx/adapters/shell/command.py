"""
Shell command operation — run a system command as an engine step.

``ShellCommand`` is a bound, callable operation: the command and its
arguments are captured when the object is built, so a rollback
entry holding one never re-parses text at replay time.  On failure
it attaches a typed ``FailureContext`` (operation kind, target path,
permission flag and bound retry callables) for the recovery
classifier.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import PurePath

from admintx.adapters.shell.runner import EXIT_NOT_EXECUTABLE, _run_subprocess
from admintx.core.models.outcome import FailureContext, OperationKind, Outcome

logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("permission denied", "operation not permitted")
_SHELL_OPERATORS = frozenset({"&&", "||", ";", "|"})


@dataclass
class ShellCommand:
    """A system command bound to its arguments.

    Attributes:
        command: Shell string (run via ``sh -c``) or argv list.
        kind: What the command does; inferred for ``mkdir``/``cd``.
        target: Path the command acts on, if any.
        needs_sudo: Run elevated from the start.
        timeout: Seconds before the command is killed.
        cwd: Working directory.
        env: Extra environment variables.
    """

    command: str | list[str]
    kind: OperationKind = OperationKind.GENERIC
    target: str | None = None
    needs_sudo: bool = False
    timeout: int = 300
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.command, tuple):
            self.command = list(self.command)
        if self.kind == OperationKind.GENERIC:
            self.kind, inferred = _infer_kind(self.argv)
            if self.target is None:
                self.target = inferred

    @property
    def argv(self) -> list[str]:
        """Best-effort token list (shell strings are split, not executed)."""
        if isinstance(self.command, list):
            return list(self.command)
        try:
            return shlex.split(self.command)
        except ValueError:
            return self.command.split()

    @property
    def text(self) -> str:
        if isinstance(self.command, list):
            return shlex.join(self.command)
        return self.command

    def __call__(self) -> Outcome:
        return self.run(elevated=self.needs_sudo)

    def run(self, *, elevated: bool = False) -> Outcome:
        """Execute the command once and report an ``Outcome``."""
        logger.debug("Executing: %s (cwd=%s, elevated=%s)", self.text, self.cwd, elevated)
        result = _run_subprocess(
            self.command,
            elevated=elevated,
            timeout=self.timeout,
            env_overrides=self.env or None,
            cwd=self.cwd,
        )
        exit_code = result["exit_code"]
        output = result.get("output", "")
        if result.get("error") and result["error"] not in output:
            output = f"{result['error']}: {output}" if output else result["error"]

        if exit_code == 0:
            return Outcome.success(output=output, description=self.text)

        return Outcome.failure(
            exit_code=exit_code,
            output=output,
            description=self.text,
            context=self._failure_context(exit_code, output, elevated),
        )

    def _failure_context(self, exit_code: int, output: str, elevated: bool) -> FailureContext:
        target = self.target
        if target is None and exit_code == EXIT_NOT_EXECUTABLE and self.argv:
            target = self.argv[0]
        lowered = output.lower()
        return FailureContext(
            kind=self.kind,
            command=self.text,
            target_path=target,
            permission_denied=any(m in lowered for m in _PERMISSION_MARKERS),
            needs_privilege=self.needs_sudo,
            retry=lambda: self.run(elevated=elevated),
            retry_elevated=None if elevated else (lambda: self.run(elevated=True)),
        )


def _infer_kind(argv: list[str]) -> tuple[OperationKind, str | None]:
    """Recognise directory operations from the command's own tokens."""
    if not argv:
        return OperationKind.GENERIC, None
    program = PurePath(argv[0]).name
    operands = []
    for token in argv[1:]:
        if token in _SHELL_OPERATORS:
            break
        if not token.startswith("-"):
            operands.append(token)
    if program == "mkdir" and operands:
        return OperationKind.MKDIR, operands[-1]
    if program == "cd" and operands:
        return OperationKind.CHDIR, operands[0]
    return OperationKind.GENERIC, None

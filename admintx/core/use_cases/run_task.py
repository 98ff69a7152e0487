"""
Run use case — execute a YAML task file under the engine.

This is the vertical slice from a task file to an exit status:
load the task, build a session, turn each step into bound
operations (commands and their undo commands), run everything under
the failure supervisor, and notify when the outcome warrants a human.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from admintx.adapters.shell.command import ShellCommand
from admintx.core.config.task_loader import load_task
from admintx.core.context import Session
from admintx.core.engine.retry import RetryPolicy
from admintx.core.engine.transaction import Step
from admintx.core.errors import ConfigError
from admintx.core.models.outcome import Outcome
from admintx.core.models.settings import Settings
from admintx.core.models.task import RetrySpec, TaskFile, TaskStep
from admintx.core.notify import LogNotifier, Notifier

logger = logging.getLogger(__name__)


@dataclass
class TaskRunResult:
    """Result of running a task file."""

    task_name: str = ""
    exit_code: int = 0
    dry_run: bool = False
    error_count: int = 0
    rollback_failures: int = 0
    verdicts: list[dict[str, Any]] = field(default_factory=list)
    planned: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "task": self.task_name,
            "ok": self.ok,
            "exit_code": self.exit_code,
        }
        if self.error:
            result["error"] = self.error
            return result
        result.update(
            {
                "dry_run": self.dry_run,
                "error_count": self.error_count,
                "rollback_failures": self.rollback_failures,
                "failures": self.verdicts,
            }
        )
        if self.dry_run:
            result["planned"] = self.planned
        return result


def build_command(step: TaskStep, command: str | list[str]) -> ShellCommand:
    """Bind a step's command (or undo command) to a ``ShellCommand``."""
    return ShellCommand(
        command,
        kind=step.kind,
        target=step.target,
        needs_sudo=step.needs_sudo,
        timeout=step.timeout,
    )


def _policy(spec: RetrySpec | None) -> RetryPolicy | None:
    if spec is None:
        return None
    return RetryPolicy(max_attempts=spec.max_attempts, initial_delay=spec.initial_delay)


def build_transaction_steps(
    session: Session, steps: list[TaskStep], default_retry: RetrySpec | None
) -> list[Step]:
    """Translate task steps into coordinator steps (nested transactions included)."""
    built = []
    for step in steps:
        if step.is_transaction:
            built.append(
                Step(
                    operation=_nested_transaction(session, step, default_retry),
                    description=step.label,
                )
            )
            continue
        built.append(
            Step(
                operation=build_command(step, step.run),
                description=step.label,
                allow_failure=step.allow_failure,
                undo=build_command(step, step.undo) if step.undo is not None else None,
                undo_description=f"Undo: {step.label}",
                retry=_policy(step.retry or default_retry),
            )
        )
    return built


def _nested_transaction(
    session: Session, step: TaskStep, default_retry: RetrySpec | None
) -> Callable[[], Any]:
    def _run() -> Any:
        return session.transaction(
            step.transaction or "",
            build_transaction_steps(session, step.steps, default_retry),
        )

    return _run


def _run_command_step(session: Session, step: TaskStep, default_retry: RetrySpec | None) -> Outcome:
    operation = build_command(step, step.run)
    retry = step.retry or default_retry
    if retry is not None:
        outcome = session.retry(operation, step.label, retry.max_attempts, retry.initial_delay)
        if outcome.failed and step.allow_failure:
            logger.warning("%s exhausted retries; continuing (allow_failure)", step.label)
            return replace(outcome, ok=True, tolerated=True)
        return outcome
    return session.execute(operation, step.label, step.allow_failure)


def task_script(task: TaskFile) -> Callable[[Session], None]:
    """Build the script that runs ``task`` inside a session."""

    def _script(session: Session) -> None:
        logger.info("Starting task: %s", task.name)
        for step in task.steps:
            if step.is_transaction:
                result = session.transaction(
                    step.transaction or "",
                    build_transaction_steps(session, step.steps, task.retry),
                )
                session.require(result)
                continue

            outcome = session.require(_run_command_step(session, step, task.retry))
            # Success, or a failure the supervisor resolved; never tolerated or dry-run
            if step.undo is not None and outcome.succeeded_for_real:
                session.register_rollback(build_command(step, step.undo), f"Undo: {step.label}")
        logger.info("Task completed: %s", task.name)

    return _script


def run_task(
    task_path: Path,
    settings: Settings | None = None,
    notifier: Notifier | None = None,
    session: Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
    handle_signals: bool = False,
) -> TaskRunResult:
    """Load and run a task file.

    Args:
        task_path: YAML task file.
        settings: Runtime settings (ignored when ``session`` is given).
        notifier: Where alerts go (default: logging).
        session: Pre-built session (tests, library callers).
        sleep: Backoff sleep for a session built here.
        handle_signals: Map SIGTERM onto the full-unwind path.

    Returns:
        TaskRunResult; ``error`` is set when the task could not be loaded.
    """
    try:
        task = load_task(task_path)
    except ConfigError as e:
        return TaskRunResult(exit_code=2, error=str(e))

    session = session or Session(settings, sleep=sleep)
    exit_code = session.run(task_script(task), handle_signals=handle_signals)

    result = TaskRunResult(
        task_name=task.name,
        exit_code=exit_code,
        dry_run=session.dry_run,
        error_count=session.error_count,
        rollback_failures=session.rollback_failures,
        verdicts=[v.to_dict() for v in session.supervisor.verdicts],
        planned=[p.to_dict() for p in session.planned],
    )
    _notify(notifier or LogNotifier(), task, result, session)
    return result


def _notify(notifier: Notifier, task: TaskFile, result: TaskRunResult, session: Session) -> None:
    if result.exit_code != 0:
        notifier.notify(
            "error",
            f"Task '{task.name}' failed (exit code {result.exit_code})",
            _notice_body(session, result),
        )
    elif result.rollback_failures:
        notifier.notify(
            "warning",
            f"Task '{task.name}' left residual state",
            _notice_body(session, result),
        )


def _notice_body(session: Session, result: TaskRunResult) -> str:
    summary = session.summary()
    lines = [
        f"Exit code: {result.exit_code}",
        f"Errors handled: {summary['total_errors']}",
        f"Last error: {summary['last_error'] or '-'}",
        f"Rollback failures: {result.rollback_failures}",
        f"Error log: {session.error_log.path}",
    ]
    return "\n".join(lines)

"""
Check use case — validate a task file without running anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from admintx.core.config.task_loader import load_task
from admintx.core.errors import ConfigError
from admintx.core.models.task import TaskFile, TaskStep


@dataclass
class TaskCheckResult:
    """Result of task file validation."""

    valid: bool = False
    task: TaskFile | None = None
    task_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "task_path": str(self.task_path) if self.task_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "task_name": self.task.name if self.task else None,
            "step_count": len(self.task.steps) if self.task else 0,
            "command_count": self.task.command_count if self.task else 0,
        }


def check_task(task_path: Path) -> TaskCheckResult:
    """Validate a task file and report issues.

    Args:
        task_path: Path to the YAML task file.

    Returns:
        TaskCheckResult with validation status and any issues.
    """
    result = TaskCheckResult(task_path=task_path)

    try:
        task = load_task(task_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    result.task = task

    # Semantic checks
    if not task.steps:
        result.warnings.append("No steps defined. The task does nothing.")

    for path, step in _walk(task.steps):
        if step.is_transaction:
            names = [s.transaction for s in step.steps if s.is_transaction]
            dupes = sorted({n for n in names if n and names.count(n) > 1})
            if dupes:
                result.warnings.append(
                    f"{path}: duplicate nested transaction name(s): {', '.join(dupes)}"
                )
            continue
        if step.retry is not None and step.undo is None and step.needs_sudo:
            result.warnings.append(
                f"{path}: privileged retried step has no undo command"
            )
        if step.kind != "generic" and not step.target:
            result.warnings.append(
                f"{path}: kind '{step.kind}' without 'target' limits recovery"
            )

    result.valid = len(result.errors) == 0
    return result


def _walk(steps: list[TaskStep], prefix: str = "steps"):
    for i, step in enumerate(steps):
        path = f"{prefix}[{i}]"
        yield path, step
        if step.is_transaction:
            yield from _walk(step.steps, f"{path}.steps")

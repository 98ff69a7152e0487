"""
Notification interface — how callers alert a human.

The engine never notifies by itself.  Callers (the task-run use
case) decide from the counts the engine exposes whether a run
warrants an alert, and hand it to a ``Notifier``.
"""

from __future__ import annotations

import logging
from typing import Protocol

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class Notifier(Protocol):
    """Anything that can deliver ``(severity, subject, body)`` to a human."""

    def notify(self, severity: str, subject: str, body: str) -> None: ...


class LogNotifier:
    """Default notifier: writes the notice through logging."""

    def __init__(self, name: str = "admintx.notify"):
        self._logger = logging.getLogger(name)

    def notify(self, severity: str, subject: str, body: str) -> None:
        level = _LEVELS.get(severity.lower(), logging.WARNING)
        self._logger.log(level, "%s\n%s", subject, body)

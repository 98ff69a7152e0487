"""
Rollback ledger — ordered record of compensating actions.

As the forward path makes durable changes it registers one undo
callable per change.  Replay runs a window of the ledger strictly
newest-first and removes what it ran; clear drops a window without
running it.  Entries below a window's floor are never touched,
which is what isolates an outer scope from an inner transaction's
cleanup.

Indices are 0-based and equal to an entry's position, so the ledger
only ever shrinks from the tail.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from admintx.core.engine.operation import as_callable, run_operation
from admintx.core.errors import RollbackActionFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RollbackAction:
    """A registered compensating action."""

    index: int
    action: Callable[[], Any]
    description: str


class RollbackLedger:
    """Append-only (forward) / tail-truncated (replay) undo stack."""

    def __init__(self) -> None:
        self._entries: list[RollbackAction] = []
        self.failures: list[RollbackActionFailure] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[RollbackAction, ...]:
        return tuple(self._entries)

    def register(self, action: Any, description: str = "Rollback action") -> int:
        """Append a compensating action and return its index.

        ``action`` is bound now (a command string or argv list becomes a
        ``ShellCommand``); nothing is evaluated at replay time.
        """
        index = len(self._entries)
        self._entries.append(
            RollbackAction(index=index, action=as_callable(action), description=description)
        )
        logger.debug("Registered rollback action #%d: %s", index, description)
        return index

    def replay(self, from_index: int = 0, to_index: int | None = None) -> int:
        """Run entries ``to_index`` down to ``from_index`` and remove them.

        A failing action is logged and counted; replay always goes on
        to the next lower index.

        Args:
            from_index: Lowest index to replay (the scope's floor).
            to_index: Highest index; defaults to, and must be, the tail.

        Returns:
            Number of compensating actions that failed.
        """
        tail = len(self._entries) - 1
        if to_index is None:
            to_index = tail
        if from_index < 0 or to_index < -1:
            raise ValueError(f"Invalid replay window [{from_index}, {to_index}]")
        if from_index > to_index:
            logger.debug("Nothing to roll back in window [%d, %d]", from_index, to_index)
            return 0
        if to_index != tail:
            raise ValueError(
                f"Replay window must end at the ledger tail (#{tail}), got #{to_index}"
            )

        window = self._entries[from_index : to_index + 1]
        logger.info(
            "Starting rollback of %d action(s) (#%d..#%d)",
            len(window),
            to_index,
            from_index,
        )

        failures = 0
        for entry in reversed(window):
            logger.info("Executing rollback action #%d: %s", entry.index, entry.description)
            outcome = run_operation(entry.action)
            if outcome.ok:
                logger.info("Rollback action #%d completed", entry.index)
                continue
            failures += 1
            self.failures.append(
                RollbackActionFailure(
                    index=entry.index,
                    description=entry.description,
                    exit_code=outcome.exit_code,
                    output=outcome.output,
                )
            )
            logger.error(
                "Rollback action #%d failed (exit %d): %s",
                entry.index,
                outcome.exit_code,
                outcome.output or entry.description,
            )

        del self._entries[from_index:]

        if failures:
            logger.error("Rollback completed with %d error(s)", failures)
        else:
            logger.info("Rollback completed successfully")
        return failures

    def clear(self, from_index: int = 0) -> None:
        """Drop entries ``[from_index, end]`` without running them."""
        if from_index < 0:
            raise ValueError(f"Invalid clear index {from_index}")
        dropped = len(self._entries) - from_index
        if dropped <= 0:
            return
        del self._entries[from_index:]
        logger.debug("Cleared %d rollback action(s) from #%d", dropped, from_index)

"""
Retry scheduler — bounded attempts with exponential backoff.

Each attempt goes through the executor with failures tolerated; the
scheduler itself decides pass or fail from the real exit status.
The backoff sleep blocks the whole invocation and cannot be
cancelled.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from admintx.core.engine.executor import CommandExecutor
from admintx.core.engine.operation import Operation
from admintx.core.models.outcome import Outcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How a step should be retried."""

    max_attempts: int = 3
    initial_delay: float = 1.0


@dataclass
class RetryState:
    """Transient state of one retry invocation."""

    attempt: int
    max_attempts: int
    delay: float

    @property
    def last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


class RetryScheduler:
    """Run an operation up to ``max_attempts`` times, doubling the delay.

    Args:
        executor: Executor used for every attempt.
        sleep: Blocking sleep function (injected in tests).
    """

    def __init__(
        self,
        executor: CommandExecutor,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._executor = executor
        self._sleep = sleep

    def run(
        self,
        max_attempts: int,
        initial_delay: float,
        operation: Operation,
        description: str = "Operation",
    ) -> Outcome:
        """Retry ``operation`` until it succeeds or attempts run out.

        Returns:
            The first successful outcome, or a failed outcome carrying
            the last attempt's status (``attempts == max_attempts``).
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {initial_delay}")

        state = RetryState(attempt=1, max_attempts=max_attempts, delay=float(initial_delay))
        while True:
            logger.info("%s - attempt %d/%d", description, state.attempt, state.max_attempts)
            outcome = self._executor.execute(operation, description, allow_failure=True)

            if outcome.exit_code == 0:
                if state.attempt > 1:
                    logger.info("%s succeeded on attempt %d", description, state.attempt)
                return replace(outcome, ok=True, tolerated=False, attempts=state.attempt)

            if state.last_attempt:
                logger.error("%s failed after %d attempts", description, state.max_attempts)
                return replace(outcome, ok=False, tolerated=False, attempts=state.attempt)

            logger.info("Waiting %.1fs before retry...", state.delay)
            self._sleep(state.delay)
            state.delay *= 2
            state.attempt += 1

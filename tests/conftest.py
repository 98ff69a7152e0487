"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from admintx.core.context import Session
from admintx.core.models.settings import Settings
from admintx.core.persistence.error_log import ErrorLogWriter


class SleepRecorder:
    """Stand-in for ``time.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary data directory."""
    return Settings(data_dir=tmp_path / "data")


@pytest.fixture
def error_log(tmp_path: Path) -> ErrorLogWriter:
    return ErrorLogWriter(tmp_path / "data" / "logs" / "errors.log", fallback=None)


@pytest.fixture
def session(settings: Settings, error_log: ErrorLogWriter, sleeps: SleepRecorder) -> Session:
    """An isolated session: no real sleeping, no elevation."""
    return Session(
        settings,
        error_log=error_log,
        sleep=sleeps,
        elevation_available=lambda: False,
    )


@pytest.fixture
def calls() -> list[str]:
    """Shared call log for ordering assertions."""
    return []

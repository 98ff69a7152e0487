"""
Logging configuration — console and file sinks for the CLI.

The engine only ever emits through ``logging.getLogger(__name__)``;
where lines end up is decided here, once, by ``main.py``.  The logger
name is the log category, so filtering on ``admintx.core.engine.ledger``
isolates rollback lines and ``admintx.core.engine.supervisor`` the
error handling.

Console level precedence:
    --debug / --verbose / --quiet  >  ADMINTX_LOG_LEVEL  >  WARNING

An optional file sink (ADMINTX_LOG_FILE) keeps its own level
(ADMINTX_LOG_FILE_LEVEL) so an unattended run can log INFO to disk
while the console stays quiet.
"""

from __future__ import annotations

import logging
import sys

# ── Formats per console verbosity ───────────────────────────────

_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    logging.INFO: ("[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s", "%Y-%m-%d %H:%M:%S"),
}
_CONSOLE_DEFAULT: tuple[str, str | None] = ("%(levelname)s: %(message)s", None)

# Same timestamp layout as the error log
_FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s:%(lineno)d %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Loggers outside admintx that get chatty below WARNING
_NOISY_LOGGERS = ("urllib3", "asyncio", "filelock")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure process-wide logging sinks.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of an additional file sink.
        log_file_level: Level for the file sink (default: ``level``).
        quiet_third_party: Hold non-admintx loggers at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))
    effective = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_file_handler(log_file, file_level))
        effective = min(effective, file_level)

    root.setLevel(effective)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # Handler errors never propagate into the run
    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT
    for threshold in sorted(_CONSOLE_FORMATS):
        if level <= threshold:
            fmt, datefmt = _CONSOLE_FORMATS[threshold]
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.WARNING

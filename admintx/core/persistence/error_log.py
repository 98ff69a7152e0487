"""
Error log — append-only, line-oriented record of handled failures.

Every failure the supervisor handles appends one ``ErrorRecord``
block.  The file is plain text, safe to tail or grep, and never
rewritten by the engine; pruning old logs is a separate retention
sweep (``prune_error_logs``) run by maintenance commands.
"""

from __future__ import annotations

import getpass
import logging
import socket
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from admintx.core.models.error_record import BLOCK_DELIMITER, ErrorRecord

logger = logging.getLogger(__name__)

DEFAULT_ERROR_LOG_FILE = "errors.log"
FALLBACK_ERROR_LOG = Path.home() / ".admintx" / "logs" / DEFAULT_ERROR_LOG_FILE


class ErrorLogWriter:
    """Append ``ErrorRecord`` blocks to a text file.

    The directory is created on first write.  If it cannot be created
    the writer switches to ``fallback`` once and keeps using it.
    """

    def __init__(self, path: Path, fallback: Path | None = FALLBACK_ERROR_LOG):
        self._path = Path(path)
        self._fallback = fallback

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: ErrorRecord) -> None:
        """Append one record block. I/O errors are logged, not raised."""
        if not self._ensure_directory():
            return
        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(record.to_log_block())
            logger.debug("Error record #%d written to %s", record.sequence_number, self._path)
        except OSError as e:
            logger.error("Failed to write error record: %s", e)

    def read_records(self) -> list[ErrorRecord]:
        """Parse every record in the log, oldest first."""
        if not self._path.is_file():
            return []
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Failed to read error log: %s", e)
            return []

        records = []
        block: list[str] = []
        for line in text.splitlines():
            block.append(line)
            if line.strip() == BLOCK_DELIMITER:
                record = ErrorRecord.from_log_block("\n".join(block))
                if record is None:
                    logger.warning("Skipping unreadable error log block in %s", self._path)
                else:
                    records.append(record)
                block = []
        return records

    def read_recent(self, n: int = 20) -> list[ErrorRecord]:
        return self.read_records()[-n:]

    def tail_lines(self, n: int = 50) -> list[str]:
        """Last ``n`` raw lines of the log."""
        if not self._path.is_file():
            return []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return [line.rstrip("\n") for line in f][-n:]
        except OSError:
            return []

    def summary(self) -> dict[str, Any]:
        records = self.read_records()
        last = records[-1] if records else None
        return {
            "path": str(self._path),
            "total_errors": len(records),
            "last_error": last.operation_text if last else "",
            "last_error_code": last.exit_code if last else 0,
        }

    def _ensure_directory(self) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            if self._fallback is None or self._fallback == self._path:
                logger.error("Cannot create error log directory %s: %s", self._path.parent, e)
                return False
            logger.warning(
                "Cannot create %s (%s); using %s", self._path.parent, e, self._fallback
            )
            self._path = self._fallback
            self._fallback = None
            return self._ensure_directory()


def generate_error_report(
    error_log: ErrorLogWriter,
    output: Path,
    summary: dict[str, Any] | None = None,
    recent_lines: int = 50,
) -> Path:
    """Write a human-readable error report.

    Args:
        error_log: Log to summarise.
        output: Report file to write.
        summary: Counters from a live session; read from the log if None.
        recent_lines: How many raw log lines to include.

    Returns:
        The report path.
    """
    summary = summary or error_log.summary()
    tail = error_log.tail_lines(recent_lines)

    lines = [
        "Error Report",
        "============",
        f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"Host: {socket.getfqdn()}",
        f"User: {_current_user()}",
        f"Script: {Path(sys.argv[0]).name if sys.argv and sys.argv[0] else 'admintx'}",
        "",
        "Summary:",
        "--------",
        f"Total Errors: {summary.get('total_errors', 0)}",
        f"Last Error: {summary.get('last_error', '')}",
        f"Last Error Code: {summary.get('last_error_code', 0)}",
        "",
        "Recent Errors:",
        "--------------",
    ]
    lines.extend(tail or ["No error log available"])

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info("Error report generated: %s", output)
    return output


def prune_error_logs(
    directory: Path,
    retention_days: int = 30,
    now: float | None = None,
) -> list[Path]:
    """Delete ``error*.log`` files older than ``retention_days``.

    Returns:
        The paths that were removed.
    """
    if retention_days < 0:
        raise ValueError(f"retention_days must be >= 0, got {retention_days}")
    if not directory.is_dir():
        return []

    cutoff = (now if now is not None else time.time()) - retention_days * 86400
    logger.info("Cleaning up error logs older than %d days in %s", retention_days, directory)

    removed = []
    for path in sorted(directory.glob("error*.log")):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                removed.append(path)
        except OSError as e:
            logger.warning("Cannot remove %s: %s", path, e)
    return removed


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"

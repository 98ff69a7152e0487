"""
ErrorRecord — one entry of the persisted error log.

Records are created by the failure supervisor, never mutated, and
serialized as human-readable blocks so the log is safe to tail or
grep::

    [2026-10-19 14:03:11] ERROR
    Error #2
        Exit Code: 126
        Command: Rotate logs: /usr/local/bin/rotate
        Call Stack: main > rotate_logs > require
    ---
"""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
BLOCK_DELIMITER = "---"

_HEADER_RE = re.compile(r"^\[(?P<ts>[0-9: -]+)\] ERROR$")
_FIELD_RE = re.compile(r"^\s+(?P<key>Exit Code|Command|Call Stack):\s?(?P<value>.*)$")
_SEQ_RE = re.compile(r"^Error #(?P<seq>\d+)$")


class ErrorRecord(BaseModel):
    """A single unresolved-or-handled failure, as written to the error log."""

    model_config = ConfigDict(frozen=True)

    sequence_number: int
    exit_code: int
    operation_text: str = ""
    call_stack: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)

    def summary(self) -> str:
        return (
            f"Error #{self.sequence_number}: exit code {self.exit_code} "
            f"— {self.operation_text or 'unknown operation'}"
        )

    def to_log_block(self) -> str:
        """Render the record as an error-log block (trailing newline included)."""
        command = " ".join(self.operation_text.split())
        lines = [
            f"[{self.timestamp.strftime(TIMESTAMP_FORMAT)}] ERROR",
            f"Error #{self.sequence_number}",
            f"    Exit Code: {self.exit_code}",
            f"    Command: {command}",
            f"    Call Stack: {' > '.join(self.call_stack)}",
            BLOCK_DELIMITER,
        ]
        return "\n".join(lines) + "\n"

    @classmethod
    def from_log_block(cls, block: str) -> ErrorRecord | None:
        """Parse a block written by ``to_log_block``.

        Returns None if the text is not a recognisable record.
        """
        timestamp: datetime | None = None
        sequence: int | None = None
        fields: dict[str, str] = {}

        for line in block.splitlines():
            if line.strip() in ("", BLOCK_DELIMITER):
                continue
            if m := _HEADER_RE.match(line):
                try:
                    timestamp = datetime.strptime(m.group("ts"), TIMESTAMP_FORMAT)
                except ValueError:
                    return None
            elif m := _SEQ_RE.match(line):
                sequence = int(m.group("seq"))
            elif m := _FIELD_RE.match(line):
                fields[m.group("key")] = m.group("value")

        if timestamp is None or sequence is None or "Exit Code" not in fields:
            return None

        try:
            exit_code = int(fields["Exit Code"])
        except ValueError:
            return None

        stack_text = fields.get("Call Stack", "")
        return cls(
            sequence_number=sequence,
            exit_code=exit_code,
            operation_text=fields.get("Command", ""),
            call_stack=[f for f in stack_text.split(" > ") if f],
            timestamp=timestamp,
        )

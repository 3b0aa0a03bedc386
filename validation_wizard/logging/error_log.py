from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_location import ErrorIndex
from ..models.error_record import ErrorRecord
from ..models.session_state import Phase

"""Validation report buffer.

- JSON Lines with a fixed key set (see ErrorRecord)
- one file per run: ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC), created on
  the first flush that has records
- records are buffered and appended on ``flush()``
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer of report records; ``flush()`` writes JSON Lines."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            logs_dir = self._logs_dir or LOGS_DIR
            logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def extend_from_index(self, template: str | int, sheet: str, phase: Phase, index: ErrorIndex) -> int:
        """Buffer one record per unresolved location; returns how many."""
        added = 0
        for column, loc in index.unresolved():
            self.append(ErrorRecord.create(str(template), sheet, column, phase.value, loc))
            added += 1
        return added

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records; None when nothing was ever buffered."""
        if not self._records:
            return self._file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp

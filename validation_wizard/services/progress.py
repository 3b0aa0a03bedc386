from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Row-batch progress display with tqdm (TTY only).

Detection over large uploads advances one batch at a time; the bar counts
rows. In non-TTY environments (CI, piped output) the bar is disabled so no
ANSI control sequences end up in logs.
"""

__all__ = [
    "BatchProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class BatchProgressTracker:
    """Progress bar over rows, advanced per detection batch."""

    def __init__(self, total_rows: int, *, description: str = "Validating rows", enabled: bool = True) -> None:
        """Create the tracker.

        Args:
            total_rows: rows that will be scanned
            description: label shown in front of the bar
            enabled: caller opt-in; the bar is still suppressed without a TTY
        """
        self.total_rows = total_rows
        self.description = description
        self.rows_done = 0
        self.batches_done = 0

        self.enabled = enabled and is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def finish_batch(self, rows: int, *, errors: int | None = None) -> None:
        """Advance by one batch of ``rows`` rows."""
        self.rows_done += rows
        self.batches_done += 1
        if self.pbar is not None:
            self.pbar.update(rows)
            if errors is not None:
                self.pbar.set_postfix(errors=errors)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> BatchProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

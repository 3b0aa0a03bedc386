from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import pandas as pd

from ..models.row_data import NULL_SENTINEL, RowData

"""Export of corrected / transformed rows back to CSV or Excel.

The "NULL" sentinel is written as an empty cell. Excel output goes through
pandas with the openpyxl engine.
"""

__all__ = [
    "output_path",
    "write_rows",
]


def output_path(source: Path, output_directory: Path, suffix: str) -> Path:
    """``<output_directory>/<stem>_<suffix><ext>`` (``.xls`` sources become ``.xlsx``)."""
    ext = source.suffix.lower()
    if ext == ".xls":
        ext = ".xlsx"
    return output_directory / f"{source.stem}_{suffix}{ext}"


def _frame(headers: Sequence[str], rows: Iterable[RowData]) -> pd.DataFrame:
    records = []
    for row in rows:
        record = {}
        for h in headers:
            value = row.get(h)
            record[h] = "" if value is None or value == NULL_SENTINEL else value
        records.append(record)
    return pd.DataFrame(records, columns=list(headers))


def write_rows(path: Path, headers: Sequence[str], rows: Iterable[RowData], *, sheet_name: str | None = None) -> Path:
    """Write rows under ``headers`` to ``path`` (format from the suffix)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    df = _frame(headers, rows)
    if path.suffix.lower() == ".csv":
        df.to_csv(path, index=False)
    else:
        df.to_excel(path, sheet_name=sheet_name or "Sheet1", index=False, engine="openpyxl")
    return path

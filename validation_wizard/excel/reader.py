from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from ..models.row_data import RowData

"""Template ingestion: CSV / Excel -> header list + string rows.

- Every cell is read as a string (``dtype=str``); only truly empty cells
  become NaN, which the row model normalizes to the "NULL" sentinel. Strings
  such as "NA" are kept as data.
- ``header_row`` (1-based) selects the header line; rows above it are
  ignored, rows below it are data rows numbered from 1.
- Entirely empty rows are skipped but still consume a row number, so row
  numbers match what the user sees in the file.
"""

__all__ = [
    "EXCEL_SUFFIXES",
    "MissingColumnsError",
    "SheetData",
    "SheetHeaderError",
    "UnsupportedFileError",
    "list_sheets",
    "normalize_sheet",
    "read_raw",
    "read_table",
]

EXCEL_SUFFIXES = (".xlsx", ".xls")
CSV_SUFFIXES = (".csv",)


class SheetHeaderError(Exception):
    """Raised when the header row is missing or blank."""


class MissingColumnsError(Exception):
    """Raised when expected columns are missing from the header."""


class UnsupportedFileError(Exception):
    """Raised for file types other than .xlsx/.xls/.csv."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[RowData]


def list_sheets(path: Path) -> list[str]:
    """Sheet names of an Excel file (CSV files have none)."""
    if path.suffix.lower() in CSV_SUFFIXES:
        return []
    with pd.ExcelFile(path) as xls:
        return [str(name) for name in xls.sheet_names]


def read_raw(path: Path, sheet_name: str | None = None) -> pd.DataFrame:
    """Read a sheet (or CSV) without a header, all cells as strings.

    Args:
        path: .xlsx / .xls / .csv file
        sheet_name: sheet to read; None picks the first sheet
    """
    suffix = path.suffix.lower()
    if suffix in CSV_SUFFIXES:
        return pd.read_csv(path, header=None, dtype=str, keep_default_na=False, na_values=[""])
    if suffix in EXCEL_SUFFIXES:
        return pd.read_excel(
            path,
            sheet_name=sheet_name if sheet_name is not None else 0,
            header=None,
            dtype=str,
            keep_default_na=False,
            na_values=[""],
        )
    raise UnsupportedFileError(f"unsupported file type: {path.suffix or path.name}")


def normalize_sheet(
    df: pd.DataFrame,
    sheet_name: str,
    header_row: int = 1,
    expected_columns: set[str] | None = None,
    null_sentinels: set[str] | None = None,
) -> SheetData:
    """Apply the header row and turn the rest into RowData.

    Raises:
        SheetHeaderError: the header row does not exist or is blank
        MissingColumnsError: ``expected_columns`` not all present (case-insensitive)
    """
    if header_row < 1 or df.shape[0] < header_row:
        raise SheetHeaderError(f"sheet '{sheet_name}' has no header at row {header_row}")
    header_series = df.iloc[header_row - 1]
    if header_series.isna().all():
        raise SheetHeaderError(f"sheet '{sheet_name}' header row {header_row} is empty")
    columns = [
        str(c).strip() if not pd.isna(c) else f"Unnamed: {i}" for i, c in enumerate(header_series.tolist())
    ]

    if expected_columns is not None:
        present = {c.lower() for c in columns}
        missing = {c for c in expected_columns if c.strip().lower() not in present}
        if missing:
            raise MissingColumnsError(f"sheet '{sheet_name}' missing columns: {sorted(missing)}")

    rows: list[RowData] = []
    for offset, (_, raw) in enumerate(df.iloc[header_row:].iterrows(), start=1):
        if raw.isna().all():
            continue
        mapping = {col: (None if pd.isna(val) else val) for col, val in zip(columns, raw.tolist(), strict=False)}
        rows.append(RowData.from_mapping(offset, mapping, null_sentinels))
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)


def read_table(
    path: Path,
    sheet_name: str | None = None,
    *,
    header_row: int = 1,
    expected_columns: set[str] | None = None,
    null_sentinels: set[str] | None = None,
) -> SheetData:
    """Read and normalize one sheet (or a CSV) in one call."""
    df = read_raw(path, sheet_name)
    name = sheet_name or (list_sheets(path)[:1] or [""])[0]
    return normalize_sheet(
        df, name, header_row=header_row, expected_columns=expected_columns, null_sentinels=null_sentinels
    )

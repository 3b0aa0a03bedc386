from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

"""RowData model: one data row as column -> raw string value.

``None``, NaN and the literal string "NULL" (plus any configured sentinel
strings, compared upper-cased) are normalized to the ``"NULL"`` sentinel when
a row enters the detection/correction pipeline.
"""

__all__ = [
    "NULL_SENTINEL",
    "RowData",
    "is_empty_value",
    "normalize_value",
]

NULL_SENTINEL = "NULL"


def normalize_value(value: Any, null_sentinels: set[str] | None = None) -> str:
    """Normalize a raw cell to its pipeline string form."""
    if value is None:
        return NULL_SENTINEL
    if isinstance(value, float):
        if math.isnan(value):
            return NULL_SENTINEL
        if value.is_integer():
            # Excel の整数セルが float で来るケース
            return str(int(value))
        return str(value)
    text = str(value)
    if text == NULL_SENTINEL:
        return NULL_SENTINEL
    if null_sentinels and text.strip().upper() in null_sentinels:
        return NULL_SENTINEL
    return text


def is_empty_value(value: str | None) -> bool:
    """Empty for ``Required`` purposes: missing, blank or the NULL sentinel."""
    return value is None or value.strip() == "" or value == NULL_SENTINEL


@dataclass(frozen=True)
class RowData:
    """A single data row after ingestion.

    row_number is 1-based over data rows (header excluded), matching
    ErrorLocation.row.
    """
    row_number: int
    values: dict[str, str]
    raw_values: dict[str, Any] | None = None  # debug 用の元値

    @classmethod
    def from_mapping(
        cls,
        row_number: int,
        mapping: Mapping[str, Any],
        null_sentinels: set[str] | None = None,
    ) -> RowData:
        values = {str(k): normalize_value(v, null_sentinels) for k, v in mapping.items()}
        return cls(row_number=row_number, values=values, raw_values=dict(mapping))

    def _key(self, column: str) -> str | None:
        if column in self.values:
            return column
        wanted = column.strip().lower()
        for key in self.values:
            if key.strip().lower() == wanted:
                return key
        return None

    def has_column(self, column: str) -> bool:
        return self._key(column) is not None

    def get(self, column: str) -> str | None:
        """Case-insensitive lookup; None when the column is absent."""
        key = self._key(column)
        return None if key is None else self.values[key]

    def with_value(self, column: str, value: Any) -> RowData:
        """Copy of the row with one cell replaced (original key casing kept)."""
        key = self._key(column) or column
        values = dict(self.values)
        values[key] = normalize_value(value)
        return replace(self, values=values)

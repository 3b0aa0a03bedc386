from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from ..models.row_data import RowData, is_empty_value
from ..models.rules import DateFormat
from .rule_model import ColumnRuleSet

"""Date transformer: re-render date strings from one format tag to another.

Best effort by contract: empty values, unknown format tags and values that
do not parse under the source format pass through unchanged (WARN logged),
so the transform step never blocks export. Two-digit years are read as
20YY.
"""

__all__ = [
    "transform",
    "transform_rows",
]

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]+")


def _as_format(fmt: DateFormat | str) -> DateFormat:
    return fmt if isinstance(fmt, DateFormat) else DateFormat.from_tag(fmt)


def _parse(value: str, fmt: DateFormat) -> dict[str, int] | None:
    parts = value.strip().split(fmt.separator)
    if len(parts) != len(fmt.fields):
        return None
    fields: dict[str, int] = {}
    for name, part in zip(fmt.fields, parts, strict=True):
        if not _DIGITS.fullmatch(part):
            return None
        if name == "year" and len(part) != fmt.year_digits:
            return None
        if name != "year" and len(part) > 2:
            return None
        fields[name] = int(part)
    if fmt.year_digits == 2:
        fields["year"] += 2000
    return fields


def _render(fields: dict[str, int], fmt: DateFormat) -> str:
    out = []
    for name in fmt.fields:
        if name == "year":
            year = fields["year"]
            out.append(f"{year % 100:02d}" if fmt.year_digits == 2 else f"{year:04d}")
        else:
            # 日の情報がない形式 (MM-YYYY 等) からは 01 日で補完
            out.append(f"{fields.get(name, 1):02d}")
    return fmt.separator.join(out)


def transform(value: str | None, source_format: DateFormat | str, target_format: DateFormat | str) -> str | None:
    """Convert ``value`` from ``source_format`` to ``target_format``.

    Returns the value unchanged when it is empty or ``"NULL"``, when either
    format tag is unknown, or when it does not parse under ``source_format``.
    """
    if value is None or is_empty_value(value):
        return value
    try:
        src = _as_format(source_format)
        dst = _as_format(target_format)
    except ValueError as e:
        logger.warning(f"date transform skipped value={value!r}: {e}")
        return value
    fields = _parse(value, src)
    if fields is None:
        logger.warning(f"date transform skipped value={value!r}: does not parse as {src.value}")
        return value
    return _render(fields, dst)


def transform_rows(rows: Iterable[RowData], rule_set: ColumnRuleSet) -> list[RowData]:
    """Apply every column's Transform-Date rule to ``rows``.

    Only columns carrying both a Date rule (source) and a Transform-Date rule
    (target) are touched; ``NULL`` cells are left alone.
    """
    pairs = []
    for column in rule_set.columns():
        date_rule = rule_set.date_rule(column)
        transform_rule = rule_set.transform_rule(column)
        if date_rule is not None and transform_rule is not None:
            pairs.append((column, date_rule.source_format, transform_rule.target_format))

    result: list[RowData] = []
    for row in rows:
        for column, src, dst in pairs:
            current = row.get(column)
            if current is None or is_empty_value(current):
                continue
            row = row.with_value(column, transform(current, src, dst))
        result.append(row)
    return result

from __future__ import annotations

from bisect import insort
from collections.abc import Iterator
from dataclasses import asdict, dataclass, replace

"""Error locations and the per-phase error index.

An ErrorIndex maps column -> list of ErrorLocation ordered by row, with a
per-row lookup for incremental merges. Entries are never deleted by
incremental revalidation; cells that pass again are flagged ``resolved`` so
the history ("formula satisfied") stays visible.
"""

__all__ = [
    "ErrorIndex",
    "ErrorLocation",
]

NO_DATA_LABEL = "Contains No Data"


@dataclass(frozen=True)
class ErrorLocation:
    """One failing cell.

    Attributes:
        row: 1-based data row number
        value: original string value ("NULL" sentinel for empty/null)
        rule_failed: identifier of the rule that failed
        reason: human-readable cause (message bank text)
        reason_code: stable reason code string
        resolved: set when a later revalidation of the row passed
    """
    row: int
    value: str
    rule_failed: str
    reason: str
    reason_code: str = ""
    resolved: bool = False

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


class ErrorIndex:
    """Column -> ordered list of ErrorLocation.

    Locations are also reachable by row, so merging one row's revalidation
    touches only that row's entries.
    """

    def __init__(self, entries: dict[str, list[ErrorLocation]] | None = None) -> None:
        # column -> row -> locations (insertion order within a row)
        self._entries: dict[str, dict[int, list[ErrorLocation]]] = {}
        self._row_order: dict[str, list[int]] = {}
        self._columns_by_row: dict[int, dict[str, None]] = {}
        self._count = 0
        self._unresolved = 0
        for column, locations in (entries or {}).items():
            for loc in locations:
                self.add(column, loc)

    def add(self, column: str, location: ErrorLocation) -> None:
        rows = self._entries.setdefault(column, {})
        if location.row not in rows:
            rows[location.row] = []
            # 検出は行順なので通常は末尾追加
            insort(self._row_order.setdefault(column, []), location.row)
            self._columns_by_row.setdefault(location.row, {})[column] = None
        rows[location.row].append(location)
        self._count += 1
        if not location.resolved:
            self._unresolved += 1

    def columns(self) -> list[str]:
        return list(self._entries)

    def _locations(self, column: str) -> Iterator[ErrorLocation]:
        rows = self._entries.get(column, {})
        for row in self._row_order.get(column, []):
            yield from rows[row]

    def for_column(self, column: str) -> list[ErrorLocation]:
        return list(self._locations(column))

    def __iter__(self) -> Iterator[tuple[str, ErrorLocation]]:
        for column in self._entries:
            for loc in self._locations(column):
                yield column, loc

    def __len__(self) -> int:
        return self._count

    @property
    def errors_detected(self) -> int:
        return self._count

    @property
    def resolved_count(self) -> int:
        return self._count - self._unresolved

    def unresolved(self) -> list[tuple[str, ErrorLocation]]:
        return [(c, loc) for c, loc in self if not loc.resolved]

    def all_resolved(self) -> bool:
        return self._unresolved == 0

    def rows_with_errors(self, *, unresolved_only: bool = True) -> list[int]:
        rows = {loc.row for _, loc in self if not (unresolved_only and loc.resolved)}
        return sorted(rows)

    def entries_for_row(self, row: int) -> list[tuple[str, ErrorLocation]]:
        return [
            (column, loc)
            for column in self._columns_by_row.get(row, {})
            for loc in self._entries[column][row]
        ]

    def merge_row(
        self,
        row: int,
        affected: set[tuple[str, str]],
        failures: list[tuple[str, ErrorLocation]],
    ) -> None:
        """Merge a fresh revalidation result for one row.

        Args:
            row: 1-based row number that was revalidated
            affected: (column, rule identifier) pairs that were re-run
            failures: (column, location) failures found by the re-run
        """
        pending = {(c, loc.rule_failed): loc for c, loc in failures}
        for column in self._columns_by_row.get(row, {}):
            locations = self._entries[column][row]
            for i, loc in enumerate(locations):
                key = (column, loc.rule_failed)
                if key not in affected:
                    continue
                if key in pending:
                    new = pending.pop(key)
                elif not loc.resolved:
                    new = replace(loc, resolved=True)
                else:
                    continue
                self._unresolved += int(not new.resolved) - int(not loc.resolved)
                locations[i] = new
        for (column, _), loc in pending.items():
            self.add(column, loc)

    def reasons_by_row(self, *, unresolved_only: bool = True) -> dict[int, str]:
        """Aggregate "<column>: <rule> - <reason>" strings per row."""
        reasons: dict[int, list[str]] = {}
        for column, loc in self:
            if unresolved_only and loc.resolved:
                continue
            text = NO_DATA_LABEL if loc.value == "NULL" and loc.rule_failed == "Required" else loc.reason
            reasons.setdefault(loc.row, []).append(f"{column}: {loc.rule_failed} - {text}")
        return {row: "; ".join(parts) for row, parts in sorted(reasons.items())}

    def to_dict(self) -> dict[str, list[dict[str, object]]]:
        return {c: [loc.to_dict() for loc in self._locations(c)] for c in self._entries}

    def copy(self) -> ErrorIndex:
        clone = ErrorIndex()
        for column, loc in self:
            clone.add(column, loc)
        return clone

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..models.error_location import ErrorIndex, ErrorLocation
from ..models.reasons import ReasonCode, ValidationOutcome
from ..models.row_data import RowData
from ..models.rules import normalize_column
from ..models.session_state import Phase
from .detection import DetectionResult, revalidate_row
from .rule_model import ColumnRuleSet

"""Correction tracker: phase-scoped correction maps with instant revalidation.

Every phase (generic, custom, final) has its own correction namespace keyed by
row, then column, so applying a row's corrections never scans other rows.
Recording a correction stores the value, re-runs the phase's rules for the
affected row, merges the result into the phase's error index and reports
whether every known error of the phase is now resolved.

One tracker belongs to one session; it is discarded on reset/finalize.
"""

__all__ = [
    "CorrectionResult",
    "CorrectionTracker",
    "PhaseStats",
]

logger = logging.getLogger(__name__)

CellKey = tuple[str, int]


@dataclass(frozen=True)
class CorrectionResult:
    """Outcome of one recorded correction.

    Attributes:
        phase: namespace the value was stored in
        column: normalized column name
        row: 1-based row number
        value: stored value
        valid: the row passes the phase's rules for this cell
        outcome: first failure (or ok) for display
        all_corrected: every known error of the phase is resolved
    """
    phase: Phase
    column: str
    row: int
    value: str
    valid: bool
    outcome: ValidationOutcome
    all_corrected: bool


@dataclass(frozen=True)
class PhaseStats:
    rules_applied: int = 0
    errors_detected: int = 0
    errors_corrected: int = 0


def _outcome_from(location: ErrorLocation) -> ValidationOutcome:
    try:
        code: ReasonCode | None = ReasonCode(location.reason_code)
    except ValueError:
        code = None
    return ValidationOutcome(
        valid=False,
        reason_code=code,
        message=location.reason,
        rule_failed=location.rule_failed,
    )


class CorrectionTracker:
    """Per-session correction state.

    ``record_correction`` and its row revalidation run under one lock, so
    corrections to the same cell apply last-write-wins in submission order.
    """

    def __init__(self, rule_set: ColumnRuleSet, rows: Sequence[RowData]) -> None:
        self._rule_set = rule_set
        self._rows: dict[int, RowData] = {r.row_number: r for r in rows}
        # phase -> row -> column -> value
        self._corrections: dict[Phase, dict[int, dict[str, str]]] = {p: {} for p in Phase}
        self._validity: dict[Phase, dict[CellKey, bool]] = {p: {} for p in Phase}
        self._results: dict[Phase, DetectionResult] = {}
        self._lock = threading.RLock()

    @property
    def rule_set(self) -> ColumnRuleSet:
        return self._rule_set

    def set_rule_set(self, rule_set: ColumnRuleSet) -> None:
        with self._lock:
            self._rule_set = rule_set

    def load_detection(self, result: DetectionResult) -> None:
        """Install a fresh detection result as the phase's error index."""
        with self._lock:
            self._results[result.phase] = result

    def index(self, phase: Phase) -> ErrorIndex | None:
        result = self._results.get(phase)
        return None if result is None else result.index

    def _phases_upto(self, phase: Phase) -> list[Phase]:
        order = list(Phase)
        return order[: order.index(phase) + 1]

    def current_row(self, row_number: int, phase: Phase = Phase.FINAL) -> RowData:
        """The row with corrections of ``phase`` and earlier phases applied."""
        try:
            row = self._rows[row_number]
        except KeyError:
            raise KeyError(f"unknown row: {row_number}") from None
        for p in self._phases_upto(phase):
            for column, value in self._corrections[p].get(row_number, {}).items():
                row = row.with_value(column, value)
        return row

    def record_correction(self, phase: Phase, column: str, row_number: int, value: str) -> CorrectionResult:
        """Store a corrected value and revalidate it immediately.

        Args:
            phase: correction namespace
            column: column of the corrected cell
            row_number: 1-based row of the corrected cell
            value: new value

        Raises:
            KeyError: the row is not part of the session's data, or the
                column has no rule set
        """
        col = normalize_column(column)
        text = "" if value is None else str(value)
        with self._lock:
            if row_number not in self._rows:
                raise KeyError(f"unknown row: {row_number}")
            if col not in self._rule_set:
                raise KeyError(f"column has no rules: {column}")
            key = (col, row_number)
            self._corrections[phase].setdefault(row_number, {})[col] = text
            row = self.current_row(row_number, phase)

            result = self._results.get(phase)
            index = result.index if result is not None else ErrorIndex()
            # generic は対象セルのみ、custom / final は行全体を再検証
            columns = [col] if phase is Phase.GENERIC else None
            failures = revalidate_row(index, self._rule_set, row, phase, columns=columns)

            valid = not failures
            self._validity[phase][key] = valid
            outcome = ValidationOutcome.ok() if valid else _outcome_from(failures[0])
            all_corrected = self._all_corrected_locked(phase)

        logger.debug(
            f"correction phase={phase.value} column={col} row={row_number} valid={valid} "
            f"all_corrected={all_corrected}"
        )
        return CorrectionResult(
            phase=phase,
            column=col,
            row=row_number,
            value=text,
            valid=valid,
            outcome=outcome,
            all_corrected=all_corrected,
        )

    def replay(self, phase: Phase) -> None:
        """Re-apply stored corrections of ``phase`` to a freshly loaded index."""
        with self._lock:
            for (column, row), value in self._flatten(phase).items():
                # 選択から外れた列の修正は保持するだけ
                if column in self._rule_set:
                    self.record_correction(phase, column, row, value)

    def _all_corrected_locked(self, phase: Phase) -> bool:
        result = self._results.get(phase)
        if result is None:
            # 検出前は「未確認」扱い
            return False
        return result.index.all_resolved()

    def all_corrected(self, phase: Phase) -> bool:
        """Every error detected for ``phase`` is resolved (False before detection)."""
        with self._lock:
            return self._all_corrected_locked(phase)

    def _flatten(self, phase: Phase) -> dict[CellKey, str]:
        return {
            (column, row): value
            for row, cells in self._corrections[phase].items()
            for column, value in cells.items()
        }

    def corrections(self, phase: Phase) -> dict[CellKey, str]:
        with self._lock:
            return self._flatten(phase)

    def validity(self, phase: Phase) -> dict[CellKey, bool]:
        with self._lock:
            return dict(self._validity[phase])

    def stats(self, phase: Phase) -> PhaseStats:
        with self._lock:
            result = self._results.get(phase)
            if result is None:
                return PhaseStats()
            return PhaseStats(
                rules_applied=result.rules_applied,
                errors_detected=result.errors_detected,
                errors_corrected=result.index.resolved_count,
            )

    def merge_corrections(self, phases: Iterable[Phase] = (Phase.GENERIC, Phase.CUSTOM, Phase.FINAL)) -> dict[CellKey, str]:
        """Union of the phases' corrections; later phases win on the same cell."""
        with self._lock:
            merged: dict[CellKey, str] = {}
            for phase in sorted(set(phases), key=list(Phase).index):
                merged.update(self._flatten(phase))
            return merged

    def corrected_rows(self, phase: Phase = Phase.FINAL) -> list[RowData]:
        """All rows with corrections up to ``phase`` applied, in row order."""
        with self._lock:
            return [self.current_row(n, phase) for n in sorted(self._rows)]

    def reset(self) -> None:
        with self._lock:
            for phase in Phase:
                self._corrections[phase].clear()
                self._validity[phase].clear()
            self._results.clear()

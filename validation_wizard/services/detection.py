from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..models.error_location import ErrorIndex, ErrorLocation
from ..models.reasons import ReasonCode, ValidationOutcome
from ..models.row_data import NULL_SENTINEL, RowData, is_empty_value
from ..models.rules import REQUIRED, CustomRule, Rule, normalize_column
from ..models.session_state import Phase
from .formula import evaluate_formula
from .progress import BatchProgressTracker
from .rule_model import ColumnRuleSet
from .value_validator import ValidationContext, validate_cell

"""Detection engine: run a phase's rules over all rows into an ErrorIndex.

- generic: ``Required`` + the column's primary rule (type or Date)
- custom:  active custom rules (plus their ``Required`` prerequisite)
- final:   both of the above, used to re-check the merged corrected data

``revalidate_row`` re-runs one phase's rules for a single row and merges the
result into an existing index; cells that pass again are marked resolved.
"""

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DetectionCancelled",
    "DetectionResult",
    "detect",
    "revalidate_row",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500

# (column, rule identifier) pairs re-run for a row, and the failures found
_RowCheck = tuple[set[tuple[str, str]], list[tuple[str, ErrorLocation]]]


class DetectionCancelled(Exception):
    """Raised when a cancel event is set between row batches."""


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one detection run.

    Attributes:
        phase: phase that was detected
        index: column -> failing locations, ordered by row
        rules_applied: distinct rule identifiers engaged in the phase
        rows_scanned: rows inspected
    """
    phase: Phase
    index: ErrorIndex
    rules_applied: int
    rows_scanned: int

    @property
    def errors_detected(self) -> int:
        return len(self.index)


def _location(row: RowData, value: str | None, outcome: ValidationOutcome) -> ErrorLocation:
    return ErrorLocation(
        row=row.row_number,
        value=NULL_SENTINEL if value is None else value,
        rule_failed=outcome.rule_failed or "",
        reason=outcome.message or "",
        reason_code=outcome.code or "",
    )


def _generic_rules(rule_set: ColumnRuleSet, column: str) -> list[Rule]:
    primary = rule_set.primary_rule(column)
    return [REQUIRED] if primary is None else [REQUIRED, primary]


def _active_custom_rules(rule_set: ColumnRuleSet) -> list[CustomRule]:
    return [r for r in rule_set.custom_rules() if r.is_active]


def _check_generic(rule_set: ColumnRuleSet, row: RowData, columns: Iterable[str] | None = None) -> _RowCheck:
    affected: set[tuple[str, str]] = set()
    failures: list[tuple[str, ErrorLocation]] = []
    source_formats = rule_set.source_formats()
    for column in columns if columns is not None else rule_set.columns():
        col = normalize_column(column)
        rules = _generic_rules(rule_set, col)
        affected.update((col, r.identifier) for r in rules)
        value = row.get(col)
        ctx = ValidationContext(row=row, source_formats=source_formats, column=col)
        outcome = validate_cell(rules, value, ctx)
        if not outcome.valid:
            failures.append((col, _location(row, value, outcome)))
    return affected, failures


def _check_custom(rule_set: ColumnRuleSet, row: RowData) -> _RowCheck:
    affected: set[tuple[str, str]] = set()
    failures: list[tuple[str, ErrorLocation]] = []
    missing: set[str] = set()
    for rule in _active_custom_rules(rule_set):
        col = rule.column_name
        affected.update({(col, REQUIRED.identifier), (col, rule.identifier)})
        value = row.get(col)
        if is_empty_value(value):
            # Required が先に落ちる列は式を評価しない
            if col not in missing:
                missing.add(col)
                outcome = ValidationOutcome.fail(ReasonCode.CONTAINS_NO_DATA, REQUIRED.identifier)
                failures.append((col, _location(row, value, outcome)))
            continue
        if not evaluate_formula(rule.formula, col, row):
            outcome = ValidationOutcome.fail(
                ReasonCode.CUSTOM_RULE_VIOLATION, rule.identifier, rule_name=rule.rule_name
            )
            failures.append((col, _location(row, value, outcome)))
    return affected, failures


def _check_row(
    rule_set: ColumnRuleSet, row: RowData, phase: Phase, columns: Iterable[str] | None = None
) -> _RowCheck:
    if phase is Phase.GENERIC:
        return _check_generic(rule_set, row, columns)
    if phase is Phase.CUSTOM:
        return _check_custom(rule_set, row)
    affected, failures = _check_generic(rule_set, row, columns)
    c_affected, c_failures = _check_custom(rule_set, row)
    seen = {(c, loc.rule_failed) for c, loc in failures}
    affected |= c_affected
    failures += [(c, loc) for c, loc in c_failures if (c, loc.rule_failed) not in seen]
    return affected, failures


def _rules_engaged(rule_set: ColumnRuleSet, phase: Phase) -> set[str]:
    engaged: set[str] = set()
    if phase in (Phase.GENERIC, Phase.FINAL):
        for column in rule_set.columns():
            engaged.update(r.identifier for r in _generic_rules(rule_set, column))
    if phase in (Phase.CUSTOM, Phase.FINAL):
        engaged.update(r.identifier for r in _active_custom_rules(rule_set))
    return engaged


def _batches(rows: Sequence[RowData], size: int) -> Iterable[Sequence[RowData]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def detect(
    rule_set: ColumnRuleSet,
    rows: Sequence[RowData],
    phase: Phase,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel_event: threading.Event | None = None,
    show_progress: bool = False,
) -> DetectionResult:
    """Run every rule of ``phase`` against every row.

    Args:
        rule_set: selected columns and their rules
        rows: snapshot of the template rows
        phase: generic, custom or final
        batch_size: rows per batch (cancellation is checked between batches)
        cancel_event: optional event; when set, detection stops
        show_progress: show a tqdm bar (TTY only)

    Raises:
        DetectionCancelled: ``cancel_event`` was set
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    index = ErrorIndex()
    scanned = 0
    with BatchProgressTracker(len(rows), description=f"Detecting {phase.value}", enabled=show_progress) as progress:
        for batch in _batches(rows, batch_size):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"detection cancelled phase={phase.value} rows_scanned={scanned}")
                raise DetectionCancelled(f"{phase.value} detection cancelled after {scanned} rows")
            for row in batch:
                _, failures = _check_row(rule_set, row, phase)
                for column, loc in failures:
                    index.add(column, loc)
            scanned += len(batch)
            progress.finish_batch(len(batch), errors=len(index))

    result = DetectionResult(
        phase=phase,
        index=index,
        rules_applied=len(_rules_engaged(rule_set, phase)),
        rows_scanned=scanned,
    )
    logger.info(
        f"detect phase={phase.value} rows={scanned} rules_applied={result.rules_applied} "
        f"errors={result.errors_detected}"
    )
    return result


def revalidate_row(
    index: ErrorIndex,
    rule_set: ColumnRuleSet,
    row: RowData,
    phase: Phase,
    *,
    columns: Iterable[str] | None = None,
) -> list[ErrorLocation]:
    """Re-run ``phase``'s rules for one row and merge into ``index``.

    Args:
        index: index to update in place
        rule_set: current rule set
        row: the updated row
        phase: phase whose rules are re-run
        columns: restrict generic checks to these columns (custom rules
            always re-run for the whole row)

    Returns:
        the row's current failures for the phase (empty when it passes)
    """
    affected, failures = _check_row(rule_set, row, phase, columns)
    index.merge_row(row.row_number, affected, failures)
    return [loc for _, loc in failures]

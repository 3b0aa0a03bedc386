from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from pathlib import Path

from ..models.config_models import WizardConfig
from ..models.formula import FormulaError, tokenize
from ..models.row_data import RowData
from ..models.rules import CustomRule, Rule, normalize_column, parse_rule_identifier
from ..models.session_state import Phase, SessionState
from .correction import CorrectionResult, CorrectionTracker, PhaseStats
from .date_transform import transform_rows
from .detection import DEFAULT_BATCH_SIZE, DetectionResult, detect
from .formula import check_formula
from .rule_model import (
    ColumnRuleSet,
    RuleConflict,
    RuleConflictCode,
    apply_rule,
    move_rule,
    remove_rule,
    validate_rule_sets,
)
from .store import FileTemplateStore, RuleDefinition, TemplateStore

"""ValidationSession: one upload being validated, corrected and exported.

Holds the rule set, detection results and the correction tracker for one
template/sheet and drives the wizard state machine. There is no global
state: every caller works on its own session object.
"""

__all__ = [
    "FinalizeResult",
    "SessionStateError",
    "ValidationSession",
]

logger = logging.getLogger(__name__)


class SessionStateError(Exception):
    """Operation not allowed in the session's current state."""


@dataclass(frozen=True)
class FinalizeResult:
    corrected_file_path: str
    transformed_file_path: str | None
    stats: dict[Phase, PhaseStats]


_DETECTED_TO_RESOLVED = {
    SessionState.GENERIC_DETECTED: Phase.GENERIC,
    SessionState.GENERIC_CORRECTING: Phase.GENERIC,
    SessionState.CUSTOM_DETECTED: Phase.CUSTOM,
    SessionState.CUSTOM_CORRECTING: Phase.CUSTOM,
}


class ValidationSession:
    """State for one validation wizard run.

    Typical flow::

        session = ValidationSession(7, store)
        session.load()
        session.select_headers(["qty", "joined"])
        session.apply_rule("qty", "Int")
        session.detect_generic()
        session.record_correction("qty", 3, "12")
        session.advance()   # -> generic_resolved (needs all generic errors fixed)
        session.advance()   # -> custom_detected
    """

    def __init__(
        self,
        template_id: int,
        store: TemplateStore,
        sheet_name: str | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        show_progress: bool = False,
    ) -> None:
        self.template_id = template_id
        self.store = store
        self.sheet_name = sheet_name
        self.batch_size = batch_size
        self.show_progress = show_progress
        self.state = SessionState.IDLE
        self.headers: list[str] = []
        self.rows: list[RowData] = []
        self.rule_set: ColumnRuleSet | None = None
        self.custom_rules: dict[str, CustomRule] = {}
        self.tracker: CorrectionTracker | None = None
        self.results: dict[Phase, DetectionResult] = {}
        self.cancel_event = threading.Event()
        self._loaded = False

    # ------------------------------------------------------------------
    # data & rule authoring
    # ------------------------------------------------------------------
    def load(self) -> None:
        """Fetch headers, rows and the template's custom-rule catalog.

        Store failures propagate (TemplateStoreError).
        """
        data = self.store.fetch_template_headers_and_rows(self.template_id, self.sheet_name)
        self.headers = list(data.headers)
        self.rows = list(data.rows)
        for definition in self.store.fetch_rule_definitions(self.template_id):
            if isinstance(definition.rule, CustomRule):
                self.custom_rules[definition.rule.rule_name] = definition.rule
        self._loaded = True

    def _require_rule_set(self) -> ColumnRuleSet:
        if self.rule_set is None:
            raise SessionStateError("no headers selected")
        return self.rule_set

    def select_headers(self, headers: Iterable[str] | None = None) -> ColumnRuleSet:
        """Pick the columns to validate; each starts with ``Required`` only."""
        known = {normalize_column(h): h for h in self.headers}
        chosen = []
        for h in headers if headers is not None else self.headers:
            col = normalize_column(h)
            if self._loaded and col not in known:
                raise RuleConflict(RuleConflictCode.UNKNOWN_COLUMN, col, "")
            chosen.append(known.get(col, h))
        self.rule_set = ColumnRuleSet.for_headers(chosen)
        self._rule_set_changed()
        return self.rule_set

    def _resolve(self, rule: Rule | str) -> Rule:
        if isinstance(rule, str):
            return parse_rule_identifier(rule, self.custom_rules)
        return rule

    def apply_rule(self, column: str, rule: Rule | str) -> ColumnRuleSet:
        self.rule_set = apply_rule(self._require_rule_set(), column, self._resolve(rule))
        self._rule_set_changed()
        return self.rule_set

    def remove_rule(self, column: str, rule: Rule | str) -> ColumnRuleSet:
        self.rule_set = remove_rule(self._require_rule_set(), column, rule)
        self._rule_set_changed()
        return self.rule_set

    def move_rule(self, column: str, identifier: str, position: int) -> ColumnRuleSet:
        self.rule_set = move_rule(self._require_rule_set(), column, identifier, position)
        self._rule_set_changed()
        return self.rule_set

    def add_custom_rule(self, rule: CustomRule, *, persist: bool = True) -> CustomRule:
        """Check a formula rule and add it to the template catalog.

        Raises:
            FormulaError: malformed formula or column type mismatch
        """
        types = self.rule_set.column_types() if self.rule_set is not None else {}
        check_formula(rule.formula, rule.column_name, types)
        if persist:
            rule_id = self.store.persist_rule_definition(
                RuleDefinition(template_id=self.template_id, column_name=rule.column_name, rule=rule)
            )
            rule = replace(rule, rule_id=rule_id, template_id=self.template_id)
        self.custom_rules[rule.rule_name] = rule
        return rule

    def _find_custom_rule(self, rule: str | int) -> CustomRule:
        current = next(
            (r for r in self.custom_rules.values() if rule in (r.rule_name, r.rule_id)),
            None,
        )
        if current is None:
            raise KeyError(f"unknown custom rule: {rule!r}")
        return current

    def _swap_custom_rule(self, identifier: str, updated: CustomRule | None) -> None:
        """Replace (or drop, when ``updated`` is None) a custom rule on every column."""
        if self.rule_set is None:
            return
        rs = self.rule_set
        for column in rs.columns():
            rules = rs.rules_for(column)
            if not any(r.identifier == identifier for r in rules):
                continue
            if updated is None:
                rs = rs.with_rules(column, [r for r in rules if r.identifier != identifier])
            else:
                rs = rs.with_rules(column, [updated if r.identifier == identifier else r for r in rules])
        self.rule_set = rs
        self._rule_set_changed()

    def set_custom_rule_active(self, rule: str | int, active: bool) -> CustomRule:
        """Toggle a custom rule by name or id, in the store, the catalog and the rule set."""
        current = self._find_custom_rule(rule)
        if current.rule_id is not None:
            self.store.set_rule_active(current.rule_id, active)
        updated = replace(current, is_active=active)
        self.custom_rules[updated.rule_name] = updated
        self._swap_custom_rule(updated.identifier, updated)
        logger.info(f"custom rule {updated.rule_name} active={active}")
        return updated

    def update_custom_rule(
        self,
        rule: str | int,
        *,
        formula: Iterable[object] | None = None,
        description: str | None = None,
    ) -> CustomRule:
        """Change a custom rule's formula or description.

        The rule keeps its name, column, id and active flag.

        Raises:
            KeyError: unknown rule
            FormulaError: malformed formula or column type mismatch
        """
        current = self._find_custom_rule(rule)
        updated = current
        if formula is not None:
            types = self.rule_set.column_types() if self.rule_set is not None else {}
            updated = replace(updated, formula=check_formula(formula, current.column_name, types))
        if description is not None:
            updated = replace(updated, description=description)
        if current.rule_id is not None:
            self.store.update_rule_definition(
                current.rule_id,
                RuleDefinition(template_id=self.template_id, column_name=updated.column_name, rule=updated),
            )
        self.custom_rules[updated.rule_name] = updated
        self._swap_custom_rule(updated.identifier, updated)
        logger.info(f"custom rule {updated.rule_name} updated")
        return updated

    def delete_custom_rule(self, rule: str | int) -> None:
        """Remove a custom rule from the store, the catalog and every column."""
        current = self._find_custom_rule(rule)
        if current.rule_id is not None:
            self.store.delete_rule_definition(current.rule_id)
        del self.custom_rules[current.rule_name]
        self._swap_custom_rule(current.identifier, None)
        logger.info(f"custom rule {current.rule_name} deleted")

    def _rule_set_changed(self) -> None:
        if self.tracker is not None and self.rule_set is not None:
            self.tracker.set_rule_set(self.rule_set)

    # ------------------------------------------------------------------
    # detection & correction
    # ------------------------------------------------------------------
    def _ensure_rows(self) -> None:
        if not self._loaded:
            self.load()

    def detect_generic(self) -> DetectionResult:
        """Run generic detection (re-running replaces the previous result).

        Raises:
            ValidationConfigError: a column lacks its primary rule
        """
        if self.state not in (SessionState.IDLE, *_DETECTED_TO_RESOLVED, SessionState.GENERIC_RESOLVED):
            raise SessionStateError(f"cannot run generic detection from {self.state.value}")
        rule_set = self._require_rule_set()
        validate_rule_sets(rule_set)
        self._ensure_rows()
        result = detect(
            rule_set,
            self.rows,
            Phase.GENERIC,
            batch_size=self.batch_size,
            cancel_event=self.cancel_event,
            show_progress=self.show_progress,
        )
        if self.tracker is None:
            self.tracker = CorrectionTracker(rule_set, self.rows)
        self.tracker.load_detection(result)
        self.tracker.replay(Phase.GENERIC)
        self.results[Phase.GENERIC] = result
        self.state = SessionState.GENERIC_DETECTED
        return result

    def detect_custom(self) -> DetectionResult:
        """Run custom-rule detection on the generic-corrected rows."""
        if self.state not in (SessionState.GENERIC_RESOLVED, SessionState.CUSTOM_DETECTED,
                              SessionState.CUSTOM_CORRECTING, SessionState.CUSTOM_RESOLVED):
            raise SessionStateError(f"cannot run custom detection from {self.state.value}")
        tracker = self._require_tracker()
        result = detect(
            self._require_rule_set(),
            tracker.corrected_rows(Phase.GENERIC),
            Phase.CUSTOM,
            batch_size=self.batch_size,
            cancel_event=self.cancel_event,
            show_progress=self.show_progress,
        )
        tracker.load_detection(result)
        tracker.replay(Phase.CUSTOM)
        self.results[Phase.CUSTOM] = result
        self.state = SessionState.CUSTOM_DETECTED
        return result

    def detect_final(self) -> DetectionResult:
        """Re-check the merged corrected data against generic and custom rules."""
        if self.state not in (SessionState.CUSTOM_RESOLVED, SessionState.TRANSFORM_REVIEW):
            raise SessionStateError(f"cannot run final detection from {self.state.value}")
        tracker = self._require_tracker()
        result = detect(
            self._require_rule_set(),
            tracker.corrected_rows(Phase.FINAL),
            Phase.FINAL,
            batch_size=self.batch_size,
            cancel_event=self.cancel_event,
            show_progress=self.show_progress,
        )
        tracker.load_detection(result)
        self.results[Phase.FINAL] = result
        return result

    def _require_tracker(self) -> CorrectionTracker:
        if self.tracker is None:
            raise SessionStateError("no detection has run")
        return self.tracker

    def record_correction(self, column: str, row: int, value: str, phase: Phase | None = None) -> CorrectionResult:
        """Record a correction in the active phase (or an explicit one)."""
        active = self.state.phase
        phase = phase or active
        if phase is None or phase is not active:
            raise SessionStateError(f"corrections for {phase.value if phase else 'no phase'} not accepted in {self.state.value}")
        result = self._require_tracker().record_correction(phase, column, row, value)
        if self.state is SessionState.GENERIC_DETECTED:
            self.state = SessionState.GENERIC_CORRECTING
        elif self.state is SessionState.CUSTOM_DETECTED:
            self.state = SessionState.CUSTOM_CORRECTING
        return result

    def all_corrected(self, phase: Phase | None = None) -> bool:
        phase = phase or self.state.phase
        if phase is None or self.tracker is None:
            return False
        return self.tracker.all_corrected(phase)

    # ------------------------------------------------------------------
    # state machine
    # ------------------------------------------------------------------
    def advance(self) -> SessionState:
        """Move one step forward when the current stage's gate allows it.

        Raises:
            SessionStateError: unresolved errors, or already finalized
        """
        state = self.state
        if state is SessionState.IDLE:
            self.detect_generic()
        elif state in _DETECTED_TO_RESOLVED:
            phase = _DETECTED_TO_RESOLVED[state]
            if not self.all_corrected(phase):
                raise SessionStateError(f"{phase.value} errors are not all corrected")
            self.state = SessionState.GENERIC_RESOLVED if phase is Phase.GENERIC else SessionState.CUSTOM_RESOLVED
        elif state is SessionState.GENERIC_RESOLVED:
            self.detect_custom()
        elif state is SessionState.CUSTOM_RESOLVED:
            self.state = SessionState.TRANSFORM_REVIEW
        elif state is SessionState.TRANSFORM_REVIEW:
            self.finalize()
        else:
            raise SessionStateError("session is finalized")
        logger.info(f"session {self.template_id}: {state.value} -> {self.state.value}")
        return self.state

    def back(self) -> SessionState:
        """Step back one state; corrections are kept."""
        if self.state is SessionState.FINALIZED:
            raise SessionStateError("session is finalized")
        previous = self.state.previous()
        if previous is not None:
            self.state = previous
        return self.state

    def reset(self) -> None:
        """Discard detection and corrections; the rule set is kept."""
        if self.tracker is not None:
            self.tracker.reset()
        self.tracker = None
        self.results.clear()
        self.cancel_event.clear()
        self.state = SessionState.IDLE

    # ------------------------------------------------------------------
    # review & export
    # ------------------------------------------------------------------
    def stats(self) -> dict[Phase, PhaseStats]:
        if self.tracker is None:
            return {p: PhaseStats() for p in (Phase.GENERIC, Phase.CUSTOM)}
        return {p: self.tracker.stats(p) for p in (Phase.GENERIC, Phase.CUSTOM)}

    def all_errors_resolved(self) -> bool:
        """Corrected totals equal detected totals over generic and custom."""
        stats = self.stats().values()
        return sum(s.errors_corrected for s in stats) == sum(s.errors_detected for s in stats)

    def corrected_rows(self) -> list[RowData]:
        return self._require_tracker().corrected_rows(Phase.FINAL)

    def transformation_preview(self) -> list[RowData]:
        """Corrected rows with every Transform-Date rule applied."""
        return transform_rows(self.corrected_rows(), self._require_rule_set())

    def finalize(self, *, apply_transform: bool = True) -> FinalizeResult:
        """Persist merged corrections (and the transformed file) and close the session.

        Raises:
            SessionStateError: not in transform review
        """
        if self.state is not SessionState.TRANSFORM_REVIEW:
            raise SessionStateError(f"cannot finalize from {self.state.value}")
        tracker = self._require_tracker()
        stats = self.stats()
        merged = tracker.merge_corrections()
        persisted = self.store.persist_corrections(self.template_id, merged, Phase.FINAL)
        transformed_path = None
        if apply_transform and self._require_rule_set().target_formats():
            exported = self.store.export_rows(self.template_id, self.transformation_preview(), "transformed")
            transformed_path = exported["file_path"]
        tracker.reset()
        self.tracker = None
        self.state = SessionState.FINALIZED
        return FinalizeResult(
            corrected_file_path=persisted["corrected_file_path"],
            transformed_file_path=transformed_path,
            stats=stats,
        )

    # ------------------------------------------------------------------
    # construction from config
    # ------------------------------------------------------------------
    @classmethod
    def from_config(cls, config: WizardConfig, *, store: TemplateStore | None = None,
                    show_progress: bool = False) -> ValidationSession:
        """Build a loaded session with the configured rule set.

        Raises:
            TemplateStoreError: the source cannot be read
            RuleConflict / FormulaError / ValueError: invalid rule configuration
        """
        if store is None:
            file_store = FileTemplateStore(
                Path(config.output_directory),
                header_row=config.header_row,
                null_sentinels=config.null_sentinels,
            )
            file_store.register(config.template_id, config.source_file)
            store = file_store
        session = cls(
            config.template_id,
            store,
            config.sheet_name,
            batch_size=config.batch_size,
            show_progress=show_progress,
        )
        session.load()
        session.select_headers(config.columns.keys())
        for rc in config.custom_rules:
            try:
                formula = tokenize(rc.formula)
            except FormulaError as e:
                raise FormulaError(f"custom rule {rc.rule_name}: {e}") from e
            session.custom_rules[rc.rule_name] = CustomRule(
                rule_name=rc.rule_name,
                column_name=rc.column_name,
                formula=formula,
                rule_id=rc.rule_id,
                template_id=config.template_id,
                is_active=rc.is_active,
                description=rc.description,
            )
        for column, identifiers in config.columns.items():
            for identifier in identifiers:
                session.apply_rule(column, identifier)
        types = session._require_rule_set().column_types()
        for rule in session._require_rule_set().custom_rules():
            try:
                check_formula(rule.formula, rule.column_name, types)
            except FormulaError as e:
                raise FormulaError(f"custom rule {rule.rule_name}: {e}") from e
        return session

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from ..models.rules import (
    REQUIRED,
    CustomRule,
    DateRule,
    RequiredRule,
    Rule,
    TransformDateRule,
    column_type,
    is_primary_rule,
    normalize_column,
)

"""Per-column rule sets and their composition invariants.

Every column carries ``Required`` (first, never removable) plus exactly one
primary rule: a generic type rule or a Date rule. Custom rules and at most one
Transform-Date rule (only on a Date column) may follow. Rule sets are
immutable; every mutation returns a new ColumnRuleSet.
"""

__all__ = [
    "ColumnRuleSet",
    "RuleConflict",
    "RuleConflictCode",
    "ValidationConfigCode",
    "ValidationConfigError",
    "apply_rule",
    "move_rule",
    "remove_rule",
    "validate_column_rule_set",
    "validate_rule_sets",
]

logger = logging.getLogger(__name__)


class RuleConflictCode(Enum):
    GENERIC_RULE_ALREADY_PRESENT = "GenericRuleAlreadyPresent"
    MISSING_DATE_RULE = "MissingDateRule"
    TRANSFORM_RULE_ALREADY_PRESENT = "TransformRuleAlreadyPresent"
    REQUIRED_IMMUTABLE = "RequiredImmutable"
    UNKNOWN_COLUMN = "UnknownColumn"
    CUSTOM_RULE_COLUMN_MISMATCH = "CustomRuleColumnMismatch"
    RULE_NOT_PRESENT = "RuleNotPresent"


_CONFLICT_MESSAGES = {
    RuleConflictCode.GENERIC_RULE_ALREADY_PRESENT: "Only one generic rule is allowed per column.",
    RuleConflictCode.MISSING_DATE_RULE: "'Transform-Date' can only be applied to columns with a 'Date' rule.",
    RuleConflictCode.TRANSFORM_RULE_ALREADY_PRESENT: "Only one 'Transform-Date' rule is allowed per column.",
    RuleConflictCode.REQUIRED_IMMUTABLE: "'Required' rule cannot be removed.",
    RuleConflictCode.UNKNOWN_COLUMN: "Column is not part of the selected headers.",
    RuleConflictCode.CUSTOM_RULE_COLUMN_MISMATCH: "Custom rule belongs to a different column.",
    RuleConflictCode.RULE_NOT_PRESENT: "Rule is not applied to this column.",
}


class RuleConflict(Exception):
    """Invalid rule composition; blocks saving the rule set."""

    def __init__(self, code: RuleConflictCode, column: str, rule: str) -> None:
        self.code = code
        self.column = column
        self.rule = rule
        super().__init__(f"{column}: {rule}: {_CONFLICT_MESSAGES[code]}")

    @property
    def user_message(self) -> str:
        return _CONFLICT_MESSAGES[self.code]


class ValidationConfigCode(Enum):
    MISSING_REQUIRED = "MissingRequired"
    MISSING_PRIMARY_RULE = "MissingPrimaryRule"
    EXCESS_PRIMARY_RULES = "ExcessPrimaryRules"


class ValidationConfigError(Exception):
    """Rule set is not ready for detection."""

    def __init__(self, code: ValidationConfigCode, column: str, detail: str) -> None:
        self.code = code
        self.column = column
        super().__init__(f"{column}: {detail}")


@dataclass(frozen=True)
class ColumnRuleSet:
    """Mapping of selected column -> ordered rules.

    Keys are case-normalized column names; ``headers`` keeps the original
    header spelling for display and export.
    """
    headers: tuple[str, ...]
    rules: Mapping[str, tuple[Rule, ...]]

    @classmethod
    def for_headers(cls, headers: Iterable[str]) -> ColumnRuleSet:
        """Create the initial rule set: ``Required`` on every selected header."""
        hs = tuple(str(h) for h in headers)
        return cls(headers=hs, rules={normalize_column(h): (REQUIRED,) for h in hs})

    def columns(self) -> list[str]:
        return list(self.rules)

    def __contains__(self, column: object) -> bool:
        return isinstance(column, str) and normalize_column(column) in self.rules

    def header_for(self, column: str) -> str:
        col = normalize_column(column)
        for h in self.headers:
            if normalize_column(h) == col:
                return h
        return column

    def rules_for(self, column: str) -> tuple[Rule, ...]:
        return tuple(self.rules.get(normalize_column(column), ()))

    def identifiers(self, column: str) -> list[str]:
        return [r.identifier for r in self.rules_for(column)]

    def primary_rule(self, column: str) -> Rule | None:
        return next((r for r in self.rules_for(column) if is_primary_rule(r)), None)

    def date_rule(self, column: str) -> DateRule | None:
        return next((r for r in self.rules_for(column) if isinstance(r, DateRule)), None)

    def transform_rule(self, column: str) -> TransformDateRule | None:
        return next((r for r in self.rules_for(column) if isinstance(r, TransformDateRule)), None)

    def custom_rules(self, column: str | None = None) -> list[CustomRule]:
        cols = [normalize_column(column)] if column is not None else list(self.rules)
        return [r for c in cols for r in self.rules.get(c, ()) if isinstance(r, CustomRule)]

    def column_types(self) -> dict[str, str]:
        return {c: column_type(rs) for c, rs in self.rules.items()}

    def source_formats(self) -> dict[str, str]:
        return {c: d.source_format.value for c in self.rules if (d := self.date_rule(c))}

    def target_formats(self) -> dict[str, str]:
        return {c: t.target_format.value for c in self.rules if (t := self.transform_rule(c))}

    def with_rules(self, column: str, rules: Iterable[Rule]) -> ColumnRuleSet:
        col = normalize_column(column)
        updated = dict(self.rules)
        updated[col] = _required_first(rules)
        return ColumnRuleSet(headers=self.headers, rules=updated)


def _required_first(rules: Iterable[Rule]) -> tuple[Rule, ...]:
    rest = [r for r in rules if not isinstance(r, RequiredRule)]
    return (REQUIRED, *rest)


def _conflict(code: RuleConflictCode, column: str, rule: str) -> RuleConflict:
    logger.info(f"rule conflict column={column} rule={rule} code={code.value}")
    return RuleConflict(code, column, rule)


def apply_rule(rule_set: ColumnRuleSet, column_name: str, rule: Rule) -> ColumnRuleSet:
    """Apply a rule to a column, enforcing the composition invariants.

    The first primary rule applied wins; later attempts are rejected until it
    is removed (no silent overwrite). Re-applying an existing rule is a no-op.

    Raises:
        RuleConflict: on any composition violation
    """
    col = normalize_column(column_name)
    if col not in rule_set.rules:
        raise _conflict(RuleConflictCode.UNKNOWN_COLUMN, col, rule.identifier)
    existing = rule_set.rules[col]

    if isinstance(rule, RequiredRule):
        return rule_set.with_rules(col, existing)
    if any(r.identifier == rule.identifier for r in existing):
        return rule_set.with_rules(col, existing)

    if is_primary_rule(rule):
        if any(is_primary_rule(r) for r in existing):
            raise _conflict(RuleConflictCode.GENERIC_RULE_ALREADY_PRESENT, col, rule.identifier)
    elif isinstance(rule, TransformDateRule):
        if not any(isinstance(r, DateRule) for r in existing):
            raise _conflict(RuleConflictCode.MISSING_DATE_RULE, col, rule.identifier)
        if any(isinstance(r, TransformDateRule) for r in existing):
            raise _conflict(RuleConflictCode.TRANSFORM_RULE_ALREADY_PRESENT, col, rule.identifier)
    elif isinstance(rule, CustomRule):
        if rule.column_name != col:
            raise _conflict(RuleConflictCode.CUSTOM_RULE_COLUMN_MISMATCH, col, rule.identifier)

    return rule_set.with_rules(col, (*existing, rule))


def remove_rule(rule_set: ColumnRuleSet, column_name: str, rule: Rule | str) -> ColumnRuleSet:
    """Remove a rule (by value or identifier) from a column.

    Removing the Date rule also drops the column's Transform-Date rule, which
    is only valid on a Date column.

    Raises:
        RuleConflict: ``Required`` targeted, unknown column or rule not applied
    """
    col = normalize_column(column_name)
    ident = rule if isinstance(rule, str) else rule.identifier
    if ident == REQUIRED.identifier:
        raise _conflict(RuleConflictCode.REQUIRED_IMMUTABLE, col, ident)
    if col not in rule_set.rules:
        raise _conflict(RuleConflictCode.UNKNOWN_COLUMN, col, ident)
    existing = rule_set.rules[col]
    target = next((r for r in existing if r.identifier == ident), None)
    if target is None:
        raise _conflict(RuleConflictCode.RULE_NOT_PRESENT, col, ident)
    kept = [r for r in existing if r is not target]
    if isinstance(target, DateRule):
        kept = [r for r in kept if not isinstance(r, TransformDateRule)]
    return rule_set.with_rules(col, kept)


def move_rule(rule_set: ColumnRuleSet, column_name: str, identifier: str, position: int) -> ColumnRuleSet:
    """Reorder a non-Required rule; ``position`` counts after ``Required``.

    Ordering matters for display only.
    """
    col = normalize_column(column_name)
    if identifier == REQUIRED.identifier:
        raise _conflict(RuleConflictCode.REQUIRED_IMMUTABLE, col, identifier)
    rest = [r for r in rule_set.rules_for(col) if not isinstance(r, RequiredRule)]
    target = next((r for r in rest if r.identifier == identifier), None)
    if target is None:
        raise _conflict(RuleConflictCode.RULE_NOT_PRESENT, col, identifier)
    rest.remove(target)
    rest.insert(max(0, min(position, len(rest))), target)
    return rule_set.with_rules(col, rest)


def validate_column_rule_set(rules: Iterable[Rule], column: str = "") -> None:
    """Check one column's rules are ready for detection.

    Raises:
        ValidationConfigError: MissingRequired / MissingPrimaryRule / ExcessPrimaryRules
    """
    rs = list(rules)
    if not any(isinstance(r, RequiredRule) for r in rs):
        raise ValidationConfigError(
            ValidationConfigCode.MISSING_REQUIRED, column, "'Required' rule is mandatory for each column."
        )
    primaries = [r for r in rs if is_primary_rule(r)]
    if not primaries:
        raise ValidationConfigError(
            ValidationConfigCode.MISSING_PRIMARY_RULE, column, "Expected 1 generic or Date rule, found 0."
        )
    if len(primaries) > 1:
        raise ValidationConfigError(
            ValidationConfigCode.EXCESS_PRIMARY_RULES,
            column,
            f"Expected 1 generic or Date rule, found {len(primaries)}.",
        )


def validate_rule_sets(rule_set: ColumnRuleSet) -> None:
    """Validate every selected column (first failing column raises)."""
    for column, rules in rule_set.rules.items():
        validate_column_rule_set(rules, column)

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import singledispatch

from ..models.reasons import ReasonCode, ValidationOutcome
from ..models.row_data import RowData, is_empty_value
from ..models.rules import (
    CustomRule,
    DateFormat,
    DateRule,
    RequiredRule,
    Rule,
    TransformDateRule,
    TypeKind,
    TypeRule,
)
from .formula import evaluate_formula

"""Value validator: (rule, raw value, context) -> ValidationOutcome.

One evaluation function per rule variant. All checks operate on the raw
string as given; the empty string and the "NULL" sentinel count as empty for
``Required``. Failure causes are classified so the user sees the specific
message from the message bank.
"""

__all__ = [
    "ValidationContext",
    "validate_cell",
    "validate_value",
]

_INT = re.compile(r"-?[0-9]+")
_FLOAT = re.compile(r"-?[0-9]*\.?[0-9]+")
_EMAIL = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_BOOLEAN = re.compile(r"true|false|0|1", re.IGNORECASE)
_ALNUM = re.compile(r"[A-Za-z0-9]+")
_TEXT_ALLOWED = re.compile(r'[A-Za-z\s"()]*')
_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"[0-9]")
_SPACE = re.compile(r"\s")


@dataclass(frozen=True)
class ValidationContext:
    """Cross-column context for one validation call.

    Attributes:
        row: the row the value belongs to (needed by custom rules)
        source_formats: column -> Date source format tag
        column: column the value belongs to
    """
    row: RowData | None = None
    source_formats: Mapping[str, str] = field(default_factory=dict)
    column: str | None = None


def _check_int(value: str) -> ReasonCode | None:
    if _INT.fullmatch(value):
        return None
    if "." in value:
        return ReasonCode.INTEGER_REQUIRED_BUT_DECIMAL_GIVEN
    if _LETTER.search(value):
        return ReasonCode.NON_NUMERIC_CHARACTERS
    return ReasonCode.INVALID_INTEGER_FORMAT


def _check_float(value: str) -> ReasonCode | None:
    if _FLOAT.fullmatch(value):
        return None
    if _LETTER.search(value):
        return ReasonCode.NON_NUMERIC_CHARACTERS
    if value.count(".") > 1:
        return ReasonCode.MULTIPLE_DECIMAL_POINTS
    return ReasonCode.INVALID_NUMERIC_FORMAT


def _check_email(value: str) -> ReasonCode | None:
    if _EMAIL.fullmatch(value):
        return None
    # user@domain,com のような区切り間違い
    if "," in value:
        return ReasonCode.WRONG_DOMAIN_SEPARATOR
    return ReasonCode.INVALID_EMAIL_FORMAT


def _check_text(value: str) -> ReasonCode | None:
    if _TEXT_ALLOWED.fullmatch(value):
        return None
    if _DIGIT.search(value):
        return ReasonCode.NUMBERS_NOT_ALLOWED
    return ReasonCode.INVALID_TEXT_CHARACTERS


def _check_boolean(value: str) -> ReasonCode | None:
    return None if _BOOLEAN.fullmatch(value) else ReasonCode.INVALID_BOOLEAN_VALUE


def _check_alphanumeric(value: str) -> ReasonCode | None:
    if _ALNUM.fullmatch(value):
        return None
    if _SPACE.search(value):
        return ReasonCode.SPACES_NOT_ALLOWED
    return ReasonCode.SPECIAL_CHARACTERS_NOT_ALLOWED


_TYPE_CHECKS: dict[TypeKind, Callable[[str], ReasonCode | None]] = {
    TypeKind.INT: _check_int,
    TypeKind.FLOAT: _check_float,
    TypeKind.EMAIL: _check_email,
    TypeKind.TEXT: _check_text,
    TypeKind.BOOLEAN: _check_boolean,
    TypeKind.ALPHANUMERIC: _check_alphanumeric,
}


def _day_out_of_range(value: str, fmt: DateFormat) -> bool:
    """Well-shaped value whose month is fine but whose day is not 01-31."""
    if "day" not in fmt.fields:
        return False
    parts = value.split(fmt.separator)
    if len(parts) != len(fmt.fields):
        return False
    widths = {"day": 2, "month": 2, "year": fmt.year_digits}
    for name, part in zip(fmt.fields, parts, strict=True):
        if len(part) != widths[name] or not part.isascii() or not part.isdigit():
            return False
    fields = dict(zip(fmt.fields, (int(p) for p in parts), strict=True))
    if not 1 <= fields["month"] <= 12:
        return False
    return not 1 <= fields["day"] <= 31


def _check_date(value: str, fmt: DateFormat) -> ReasonCode | None:
    if fmt.pattern.fullmatch(value):
        # 暦日チェックはしない (31-02-2025 も通す)
        return None
    if len(value) != len(fmt.example):
        return ReasonCode.INCOMPLETE_DATE
    if fmt.separator not in value:
        return ReasonCode.WRONG_SEPARATOR
    if _day_out_of_range(value, fmt):
        return ReasonCode.INVALID_DATE_VALUES
    return ReasonCode.FORMAT_MISMATCH


@singledispatch
def validate_value(rule: Rule, raw_value: str, context: ValidationContext | None = None) -> ValidationOutcome:
    """Validate one raw value against one rule.

    Args:
        rule: any Rule variant
        raw_value: the cell value as a string ("NULL" for empty)
        context: cross-column context (row for custom rules)

    Returns:
        ValidationOutcome with reason code and message bank text on failure
    """
    raise TypeError(f"unsupported rule type: {type(rule).__name__}")


@validate_value.register(RequiredRule)
def _(rule: RequiredRule, raw_value: str, context: ValidationContext | None = None) -> ValidationOutcome:
    if is_empty_value(raw_value):
        return ValidationOutcome.fail(ReasonCode.CONTAINS_NO_DATA, rule.identifier)
    return ValidationOutcome.ok()


@validate_value.register(TypeRule)
def _(rule: TypeRule, raw_value: str, context: ValidationContext | None = None) -> ValidationOutcome:
    code = _TYPE_CHECKS[rule.kind](raw_value)
    if code is None:
        return ValidationOutcome.ok()
    return ValidationOutcome.fail(code, rule.identifier)


@validate_value.register(DateRule)
def _(rule: DateRule, raw_value: str, context: ValidationContext | None = None) -> ValidationOutcome:
    code = _check_date(raw_value, rule.source_format)
    if code is None:
        return ValidationOutcome.ok()
    return ValidationOutcome.fail(code, rule.identifier, source_format=rule.source_format.value)


@validate_value.register(TransformDateRule)
def _(rule: TransformDateRule, raw_value: str, context: ValidationContext | None = None) -> ValidationOutcome:
    # transform rules reshape values at export time, they never reject
    return ValidationOutcome.ok()


@validate_value.register(CustomRule)
def _(rule: CustomRule, raw_value: str, context: ValidationContext | None = None) -> ValidationOutcome:
    row = context.row if context is not None else None
    if row is None:
        row = RowData(row_number=0, values={rule.column_name: raw_value})
    else:
        row = row.with_value(rule.column_name, raw_value)
    if evaluate_formula(rule.formula, rule.column_name, row):
        return ValidationOutcome.ok()
    return ValidationOutcome.fail(
        ReasonCode.CUSTOM_RULE_VIOLATION, rule.identifier, rule_name=rule.rule_name
    )


def validate_cell(
    rules: Iterable[Rule], raw_value: str | None, context: ValidationContext | None = None
) -> ValidationOutcome:
    """Validate a value against a column's rule list; first failure wins.

    Empty values only ever fail ``Required``; the remaining rules are not
    evaluated for them. A missing value (None) counts as empty.
    """
    rs = list(rules)
    value = "NULL" if raw_value is None else raw_value
    if is_empty_value(value):
        for rule in rs:
            if isinstance(rule, RequiredRule):
                return validate_value(rule, value, context)
        return ValidationOutcome.ok()
    for rule in rs:
        if isinstance(rule, RequiredRule):
            continue
        outcome = validate_value(rule, value, context)
        if not outcome.valid:
            return outcome
    return ValidationOutcome.ok()

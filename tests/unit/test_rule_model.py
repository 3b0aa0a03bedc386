from __future__ import annotations

import pytest

from validation_wizard.models.formula import tokenize
from validation_wizard.models.rules import (
    REQUIRED,
    CustomRule,
    DateFormat,
    DateRule,
    TransformDateRule,
    TypeKind,
    TypeRule,
    is_primary_rule,
)
from validation_wizard.services.rule_model import (
    ColumnRuleSet,
    RuleConflict,
    RuleConflictCode,
    ValidationConfigCode,
    ValidationConfigError,
    apply_rule,
    move_rule,
    remove_rule,
    validate_column_rule_set,
    validate_rule_sets,
)

INT = TypeRule(TypeKind.INT)
TEXT = TypeRule(TypeKind.TEXT)
DATE = DateRule(DateFormat.DD_MM_YYYY)
TRANSFORM = TransformDateRule(DateFormat.MM_DD_YYYY_SLASH)


@pytest.fixture()
def rule_set() -> ColumnRuleSet:
    return ColumnRuleSet.for_headers(["Qty", "Joined", "Total"])


def test_for_headers_starts_with_required(rule_set):
    assert rule_set.columns() == ["qty", "joined", "total"]
    assert all(rule_set.rules_for(c) == (REQUIRED,) for c in rule_set.columns())
    assert rule_set.header_for("QTY") == "Qty"
    assert "joined" in rule_set


def test_apply_rule_appends_after_required(rule_set):
    updated = apply_rule(rule_set, "qty", INT)
    assert updated.identifiers("qty") == ["Required", "Int"]
    # 元の rule set は変わらない
    assert rule_set.identifiers("qty") == ["Required"]


def test_second_primary_rule_is_rejected(rule_set):
    rs = apply_rule(rule_set, "qty", INT)
    with pytest.raises(RuleConflict) as e:
        apply_rule(rs, "qty", TEXT)
    assert e.value.code is RuleConflictCode.GENERIC_RULE_ALREADY_PRESENT
    assert e.value.user_message == "Only one generic rule is allowed per column."

    with pytest.raises(RuleConflict):
        apply_rule(rs, "qty", DATE)


def test_reapplying_same_rule_is_noop(rule_set):
    rs = apply_rule(rule_set, "qty", INT)
    assert apply_rule(rs, "qty", INT).identifiers("qty") == ["Required", "Int"]
    assert apply_rule(rs, "qty", REQUIRED).identifiers("qty") == ["Required", "Int"]


def test_transform_requires_date_rule(rule_set):
    with pytest.raises(RuleConflict) as e:
        apply_rule(rule_set, "joined", TRANSFORM)
    assert e.value.code is RuleConflictCode.MISSING_DATE_RULE

    rs = apply_rule(apply_rule(rule_set, "joined", DATE), "joined", TRANSFORM)
    assert rs.identifiers("joined") == ["Required", "Date(DD-MM-YYYY)", "Transform-Date(MM/DD/YYYY)"]
    assert rs.source_formats() == {"joined": "DD-MM-YYYY"}
    assert rs.target_formats() == {"joined": "MM/DD/YYYY"}

    with pytest.raises(RuleConflict) as e:
        apply_rule(rs, "joined", TransformDateRule(DateFormat.MM_YYYY))
    assert e.value.code is RuleConflictCode.TRANSFORM_RULE_ALREADY_PRESENT


def test_unknown_column_and_custom_rule_column_mismatch(rule_set):
    with pytest.raises(RuleConflict) as e:
        apply_rule(rule_set, "missing", INT)
    assert e.value.code is RuleConflictCode.UNKNOWN_COLUMN

    custom = CustomRule("cap", "qty", tokenize(["<=", "200"]))
    with pytest.raises(RuleConflict) as e:
        apply_rule(rule_set, "total", custom)
    assert e.value.code is RuleConflictCode.CUSTOM_RULE_COLUMN_MISMATCH

    rs = apply_rule(apply_rule(rule_set, "qty", INT), "qty", custom)
    assert rs.custom_rules() == [custom]
    assert rs.custom_rules("total") == []


def test_remove_rule(rule_set):
    rs = apply_rule(apply_rule(rule_set, "joined", DATE), "joined", TRANSFORM)
    with pytest.raises(RuleConflict) as e:
        remove_rule(rs, "joined", "Required")
    assert e.value.code is RuleConflictCode.REQUIRED_IMMUTABLE

    with pytest.raises(RuleConflict) as e:
        remove_rule(rs, "qty", "Int")
    assert e.value.code is RuleConflictCode.RULE_NOT_PRESENT

    # Date を外すと Transform-Date も外れる
    assert remove_rule(rs, "joined", DATE).identifiers("joined") == ["Required"]
    assert remove_rule(rs, "joined", TRANSFORM.identifier).identifiers("joined") == ["Required", "Date(DD-MM-YYYY)"]


def test_move_rule_keeps_required_first(rule_set):
    custom_a = CustomRule("a", "qty", tokenize([">", "0"]))
    custom_b = CustomRule("b", "qty", tokenize(["<", "9"]))
    rs = rule_set
    for rule in (INT, custom_a, custom_b):
        rs = apply_rule(rs, "qty", rule)

    moved = move_rule(rs, "qty", "b", 0)
    assert moved.identifiers("qty") == ["Required", "b", "Int", "a"]
    assert move_rule(rs, "qty", "Int", 99).identifiers("qty") == ["Required", "a", "b", "Int"]
    with pytest.raises(RuleConflict):
        move_rule(rs, "qty", "Required", 1)


@pytest.mark.parametrize(
    "sequence",
    [
        [INT, TEXT, DATE, TRANSFORM],
        [DATE, INT, TRANSFORM, TEXT],
        [TRANSFORM, DATE, TRANSFORM, INT],
    ],
)
def test_apply_never_drops_required_or_mixes_primaries(rule_set, sequence):
    rs = rule_set
    for rule in sequence:
        try:
            rs = apply_rule(rs, "joined", rule)
        except RuleConflict:
            pass
        rules = rs.rules_for("joined")
        assert rules[0] == REQUIRED
        assert sum(1 for r in rules if is_primary_rule(r)) <= 1


def test_validate_column_rule_set():
    validate_column_rule_set([REQUIRED, INT], "qty")

    with pytest.raises(ValidationConfigError) as e:
        validate_column_rule_set([INT], "qty")
    assert e.value.code is ValidationConfigCode.MISSING_REQUIRED

    with pytest.raises(ValidationConfigError) as e:
        validate_column_rule_set([REQUIRED], "qty")
    assert e.value.code is ValidationConfigCode.MISSING_PRIMARY_RULE

    with pytest.raises(ValidationConfigError) as e:
        validate_column_rule_set([REQUIRED, INT, DATE], "qty")
    assert e.value.code is ValidationConfigCode.EXCESS_PRIMARY_RULES
    assert "found 2" in str(e.value)


def test_validate_rule_sets_reports_first_incomplete_column(rule_set):
    rs = apply_rule(rule_set, "qty", INT)
    with pytest.raises(ValidationConfigError) as e:
        validate_rule_sets(rs)
    assert e.value.column == "joined"


def test_column_types(rule_set):
    rs = apply_rule(apply_rule(rule_set, "qty", INT), "joined", DATE)
    assert rs.column_types() == {"qty": "Int", "joined": "Date", "total": "Unknown"}

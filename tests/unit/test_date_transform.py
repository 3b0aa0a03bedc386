from __future__ import annotations

import logging

import pytest

from validation_wizard.models.row_data import RowData
from validation_wizard.models.rules import DateFormat, DateRule, TransformDateRule
from validation_wizard.services.date_transform import transform, transform_rows
from validation_wizard.services.rule_model import ColumnRuleSet, apply_rule


@pytest.mark.parametrize(
    "value, source, target, expected",
    [
        ("01-12-2025", "DD-MM-YYYY", "MM/DD/YYYY", "12/01/2025"),
        ("12-01-2025", "MM-DD-YYYY", "DD/MM/YYYY", "01/12/2025"),
        ("01-12-2025", "DD-MM-YYYY", "MM-YY", "12-25"),
        ("12-25", "MM-YY", "MM/YYYY", "12/2025"),
        ("12/2025", "MM/YYYY", "DD-MM-YYYY", "01-12-2025"),
        ("3-7-2024", "DD-MM-YYYY", "DD-MM-YYYY", "03-07-2024"),
    ],
)
def test_transform(value, source, target, expected):
    assert transform(value, source, target) == expected


def test_transform_accepts_enum_tags():
    assert transform("01/12/2025", DateFormat.DD_MM_YYYY_SLASH, DateFormat.MM_DD_YYYY) == "12-01-2025"


@pytest.mark.parametrize("fmt", list(DateFormat))
def test_same_precision_round_trip(fmt):
    value = fmt.example
    partner = {
        DateFormat.DD_MM_YYYY: DateFormat.MM_DD_YYYY_SLASH,
        DateFormat.MM_DD_YYYY: DateFormat.DD_MM_YYYY_SLASH,
        DateFormat.MM_DD_YYYY_SLASH: DateFormat.DD_MM_YYYY,
        DateFormat.DD_MM_YYYY_SLASH: DateFormat.MM_DD_YYYY,
        DateFormat.MM_YYYY: DateFormat.MM_YYYY_SLASH,
        DateFormat.MM_YY: DateFormat.MM_YY_SLASH,
        DateFormat.MM_YYYY_SLASH: DateFormat.MM_YYYY,
        DateFormat.MM_YY_SLASH: DateFormat.MM_YY,
    }[fmt]
    assert transform(transform(value, fmt, partner), partner, fmt) == value


@pytest.mark.parametrize("value", [None, "", "NULL"])
def test_empty_values_pass_through(value):
    assert transform(value, "DD-MM-YYYY", "MM/DD/YYYY") == value


def test_unparseable_value_is_returned_unchanged_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="validation_wizard"):
        assert transform("2025-12-01", "DD-MM-YYYY", "MM/DD/YYYY") == "2025-12-01"
        assert transform("01-12-25", "DD-MM-YYYY", "MM/DD/YYYY") == "01-12-25"
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 2
    assert "does not parse as DD-MM-YYYY" in warnings[0].getMessage()


def test_unknown_format_tag_is_returned_unchanged(caplog):
    with caplog.at_level(logging.WARNING, logger="validation_wizard"):
        assert transform("01-12-2025", "YYYY.MM.DD", "MM/DD/YYYY") == "01-12-2025"
    assert any("unsupported date format" in r.getMessage() for r in caplog.records)


def test_transform_rows_only_touches_transform_columns():
    rs = ColumnRuleSet.for_headers(["joined", "left"])
    rs = apply_rule(rs, "joined", DateRule(DateFormat.DD_MM_YYYY))
    rs = apply_rule(rs, "joined", TransformDateRule(DateFormat.MM_DD_YYYY_SLASH))
    rs = apply_rule(rs, "left", DateRule(DateFormat.DD_MM_YYYY))

    rows = [
        RowData(1, {"joined": "01-12-2025", "left": "02-12-2025"}),
        RowData(2, {"joined": "NULL", "left": "NULL"}),
    ]
    out = transform_rows(rows, rs)

    assert out[0].values == {"joined": "12/01/2025", "left": "02-12-2025"}
    assert out[1].values == {"joined": "NULL", "left": "NULL"}
    # 入力行は変更しない
    assert rows[0].get("joined") == "01-12-2025"

from __future__ import annotations

import pytest

from validation_wizard.models.reasons import GENERAL, ReasonCode, describe

"""Message bank contract: user-facing texts are fixed and never show raw errors."""

EXPECTED = {
    ReasonCode.CONTAINS_NO_DATA: ("Required Field Missing", "This field is mandatory and cannot be left empty."),
    ReasonCode.INVALID_EMAIL_FORMAT: (
        "Invalid Email Format",
        "Please enter a valid email address (e.g., user@company.com).",
    ),
    ReasonCode.WRONG_DOMAIN_SEPARATOR: (
        "Incorrect Email Domain",
        "Check your email domain. Use '.' not ',' (e.g., @gmail.com).",
    ),
    ReasonCode.INVALID_DATE_VALUES: (
        "Invalid Date Values",
        "Day must be 01-31 and month must be 01-12. Please verify your entry.",
    ),
    ReasonCode.INTEGER_REQUIRED_BUT_DECIMAL_GIVEN: (
        "Integer Required",
        "This field accepts whole numbers only. Remove decimal points.",
    ),
    ReasonCode.NON_NUMERIC_CHARACTERS: (
        "Invalid Number Format",
        "Enter numbers only (e.g., 123, -456). Remove letters and special characters.",
    ),
    ReasonCode.INVALID_INTEGER_FORMAT: (
        "Numeric Data Expected",
        "Please enter a valid integer without commas or special characters.",
    ),
    ReasonCode.INVALID_NUMERIC_FORMAT: (
        "Invalid Numeric Data",
        "Enter a valid number (integers or decimals allowed, e.g., 123.45).",
    ),
    ReasonCode.MULTIPLE_DECIMAL_POINTS: (
        "Number Format Error",
        "Only one decimal point allowed in numeric values.",
    ),
    ReasonCode.INVALID_TEXT_CHARACTERS: (
        "Invalid Text Characters",
        "Text fields accept letters, spaces, quotes, and parentheses only.",
    ),
    ReasonCode.NUMBERS_NOT_ALLOWED: ("Numbers Not Allowed", "This text field cannot contain numeric characters."),
    ReasonCode.INVALID_BOOLEAN_VALUE: ("Invalid Boolean Value", "Enter: true, false, 0, or 1 only."),
    ReasonCode.SPECIAL_CHARACTERS_NOT_ALLOWED: (
        "Alphanumeric Only",
        "This field accepts letters (A-Z) and numbers (0-9) only.",
    ),
    ReasonCode.SPACES_NOT_ALLOWED: (
        "Remove Special Characters",
        "Spaces and special characters not allowed. Use letters and numbers only.",
    ),
}


@pytest.mark.parametrize("code", list(EXPECTED))
def test_static_messages(code):
    assert tuple(describe(code)) == EXPECTED[code]
    assert tuple(describe(code.value)) == EXPECTED[code]


def test_parameterized_date_messages():
    assert describe(ReasonCode.FORMAT_MISMATCH, source_format="MM/DD/YYYY").message == (
        "Expected format: MM/DD/YYYY (e.g., 12/01/2025). Please correct your entry."
    )
    assert describe(ReasonCode.INCOMPLETE_DATE, source_format="MM-YY").message == (
        "Please enter complete date in MM-YY format."
    )
    assert describe(ReasonCode.WRONG_SEPARATOR, source_format="DD/MM/YYYY").message == (
        "Use correct separator for DD/MM/YYYY format."
    )


def test_custom_rule_message():
    msg = describe(ReasonCode.CUSTOM_RULE_VIOLATION, rule_name="gst_check")
    assert msg.title == "Custom Rule Violation"
    assert msg.message == "Entry does not meet requirements for rule: gst_check."


@pytest.mark.parametrize("code", [None, "SomethingNew", "Traceback (most recent call last)"])
def test_unknown_codes_fall_back_to_general(code):
    assert describe(code) == GENERAL
    assert GENERAL.message == "Please correct the highlighted errors before proceeding."


def test_every_reason_code_has_a_message():
    for code in ReasonCode:
        msg = describe(code, source_format="DD-MM-YYYY", rule_name="r")
        assert msg.title and msg.message

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

"""Reason codes and the user-facing message bank.

Reason codes are stable strings suitable for i18n lookup. Messages are the
exact texts shown to users; unknown codes fall back to the general
"validation failed" message so raw exception text never reaches the user.
"""

__all__ = [
    "Message",
    "ReasonCode",
    "ValidationOutcome",
    "describe",
    "date_example",
]


class ReasonCode(Enum):
    CONTAINS_NO_DATA = "ContainsNoData"
    INTEGER_REQUIRED_BUT_DECIMAL_GIVEN = "IntegerRequiredButDecimalGiven"
    NON_NUMERIC_CHARACTERS = "NonNumericCharacters"
    INVALID_INTEGER_FORMAT = "InvalidIntegerFormat"
    MULTIPLE_DECIMAL_POINTS = "MultipleDecimalPoints"
    INVALID_NUMERIC_FORMAT = "InvalidNumericFormat"
    INVALID_EMAIL_FORMAT = "InvalidEmailFormat"
    WRONG_DOMAIN_SEPARATOR = "WrongDomainSeparator"
    NUMBERS_NOT_ALLOWED = "NumbersNotAllowed"
    INVALID_TEXT_CHARACTERS = "InvalidTextCharacters"
    INVALID_BOOLEAN_VALUE = "InvalidBooleanValue"
    SPACES_NOT_ALLOWED = "SpacesNotAllowed"
    SPECIAL_CHARACTERS_NOT_ALLOWED = "SpecialCharactersNotAllowed"
    INCOMPLETE_DATE = "IncompleteDate"
    WRONG_SEPARATOR = "WrongSeparator"
    FORMAT_MISMATCH = "FormatMismatch"
    INVALID_DATE_VALUES = "InvalidDateValues"
    CUSTOM_RULE_VIOLATION = "CustomRuleViolation"
    VALIDATION_FAILED = "ValidationFailed"


class Message(NamedTuple):
    title: str
    message: str


_DATE_EXAMPLES = {
    "DD-MM-YYYY": "01-12-2025",
    "MM-DD-YYYY": "12-01-2025",
    "MM/DD/YYYY": "12/01/2025",
    "DD/MM/YYYY": "01/12/2025",
    "MM-YYYY": "12-2025",
    "MM-YY": "12-25",
    "MM/YYYY": "12/2025",
    "MM/YY": "12/25",
}

GENERAL = Message(
    "Data Validation Failed",
    "Please correct the highlighted errors before proceeding.",
)

_STATIC: dict[ReasonCode, Message] = {
    ReasonCode.CONTAINS_NO_DATA: Message(
        "Required Field Missing",
        "This field is mandatory and cannot be left empty.",
    ),
    ReasonCode.INTEGER_REQUIRED_BUT_DECIMAL_GIVEN: Message(
        "Integer Required",
        "This field accepts whole numbers only. Remove decimal points.",
    ),
    ReasonCode.NON_NUMERIC_CHARACTERS: Message(
        "Invalid Number Format",
        "Enter numbers only (e.g., 123, -456). Remove letters and special characters.",
    ),
    ReasonCode.INVALID_INTEGER_FORMAT: Message(
        "Numeric Data Expected",
        "Please enter a valid integer without commas or special characters.",
    ),
    ReasonCode.MULTIPLE_DECIMAL_POINTS: Message(
        "Number Format Error",
        "Only one decimal point allowed in numeric values.",
    ),
    ReasonCode.INVALID_NUMERIC_FORMAT: Message(
        "Invalid Numeric Data",
        "Enter a valid number (integers or decimals allowed, e.g., 123.45).",
    ),
    ReasonCode.INVALID_EMAIL_FORMAT: Message(
        "Invalid Email Format",
        "Please enter a valid email address (e.g., user@company.com).",
    ),
    ReasonCode.WRONG_DOMAIN_SEPARATOR: Message(
        "Incorrect Email Domain",
        "Check your email domain. Use '.' not ',' (e.g., @gmail.com).",
    ),
    ReasonCode.NUMBERS_NOT_ALLOWED: Message(
        "Numbers Not Allowed",
        "This text field cannot contain numeric characters.",
    ),
    ReasonCode.INVALID_TEXT_CHARACTERS: Message(
        "Invalid Text Characters",
        "Text fields accept letters, spaces, quotes, and parentheses only.",
    ),
    ReasonCode.INVALID_BOOLEAN_VALUE: Message(
        "Invalid Boolean Value",
        "Enter: true, false, 0, or 1 only.",
    ),
    ReasonCode.SPACES_NOT_ALLOWED: Message(
        "Remove Special Characters",
        "Spaces and special characters not allowed. Use letters and numbers only.",
    ),
    ReasonCode.SPECIAL_CHARACTERS_NOT_ALLOWED: Message(
        "Alphanumeric Only",
        "This field accepts letters (A-Z) and numbers (0-9) only.",
    ),
    ReasonCode.INVALID_DATE_VALUES: Message(
        "Invalid Date Values",
        "Day must be 01-31 and month must be 01-12. Please verify your entry.",
    ),
    ReasonCode.VALIDATION_FAILED: GENERAL,
}

# Float shares the non-numeric code with Int but shows its own text
_FLOAT_NON_NUMERIC = _STATIC[ReasonCode.INVALID_NUMERIC_FORMAT]


def date_example(source_format: str | None) -> str:
    return _DATE_EXAMPLES.get(source_format or "", "01-01-2025")


def describe(
    code: ReasonCode | str | None,
    *,
    rule: str | None = None,
    source_format: str | None = None,
    rule_name: str | None = None,
) -> Message:
    """Look up the title/message pair for a reason code.

    Args:
        code: reason code (enum or its stable string)
        rule: identifier of the rule that failed, for rule-specific wording
        source_format: date format tag, for the parameterized date messages
        rule_name: custom rule name, for the custom-rule message
    """
    if isinstance(code, str):
        try:
            code = ReasonCode(code)
        except ValueError:
            return GENERAL
    if code is None:
        return GENERAL

    fmt = source_format or ""
    if code is ReasonCode.FORMAT_MISMATCH:
        return Message(
            "Date Format Mismatch",
            f"Expected format: {fmt} (e.g., {date_example(fmt)}). Please correct your entry.",
        )
    if code is ReasonCode.INCOMPLETE_DATE:
        return Message("Incomplete Date", f"Please enter complete date in {fmt} format.")
    if code is ReasonCode.WRONG_SEPARATOR:
        return Message("Wrong Date Separator", f"Use correct separator for {fmt} format.")
    if code is ReasonCode.CUSTOM_RULE_VIOLATION:
        return Message(
            "Custom Rule Violation",
            f"Entry does not meet requirements for rule: {rule_name or ''}.",
        )
    if code is ReasonCode.NON_NUMERIC_CHARACTERS and rule == "Float":
        return _FLOAT_NON_NUMERIC
    return _STATIC.get(code, GENERAL)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one value against one rule (or a rule list)."""
    valid: bool
    reason_code: ReasonCode | None = None
    title: str | None = None
    message: str | None = None
    rule_failed: str | None = None

    @classmethod
    def ok(cls) -> ValidationOutcome:
        return cls(valid=True)

    @classmethod
    def fail(
        cls,
        code: ReasonCode,
        rule_failed: str,
        *,
        source_format: str | None = None,
        rule_name: str | None = None,
    ) -> ValidationOutcome:
        title, message = describe(
            code, rule=rule_failed, source_format=source_format, rule_name=rule_name
        )
        return cls(
            valid=False,
            reason_code=code,
            title=title,
            message=message,
            rule_failed=rule_failed,
        )

    @property
    def code(self) -> str | None:
        """Stable reason code string (None when valid)."""
        return self.reason_code.value if self.reason_code else None

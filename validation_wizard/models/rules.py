from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .formula import Token

"""Rule model: the tagged union of rule kinds and the supported date formats.

Rule identifiers are the strings the template store persists and the UI shows:
``Required``, ``Int``, ``Float``, ``Text``, ``Email``, ``Boolean``,
``Alphanumeric``, ``Date(<format>)``, ``Transform-Date(<format>)`` and the
names of custom rules.
"""

__all__ = [
    "REQUIRED",
    "CustomRule",
    "DateFormat",
    "DateRule",
    "RequiredRule",
    "Rule",
    "TransformDateRule",
    "TypeKind",
    "TypeRule",
    "UNKNOWN_TYPE",
    "column_type",
    "is_primary_rule",
    "normalize_column",
    "parse_rule_identifier",
]

UNKNOWN_TYPE = "Unknown"

_DATE_IDENTIFIER = re.compile(r"^Date\((?P<fmt>[^)]*)\)$")
_TRANSFORM_IDENTIFIER = re.compile(r"^Transform-Date\((?P<fmt>[^)]*)\)$")


def normalize_column(name: str) -> str:
    """Case-normalize a column name for comparisons."""
    return str(name).strip().lower()


class TypeKind(Enum):
    """Closed set of generic type rules (mutually exclusive with Date)."""
    INT = "Int"
    FLOAT = "Float"
    TEXT = "Text"
    EMAIL = "Email"
    BOOLEAN = "Boolean"
    ALPHANUMERIC = "Alphanumeric"


class DateFormat(Enum):
    """The eight supported date format tags."""
    DD_MM_YYYY = "DD-MM-YYYY"
    MM_DD_YYYY = "MM-DD-YYYY"
    MM_DD_YYYY_SLASH = "MM/DD/YYYY"
    DD_MM_YYYY_SLASH = "DD/MM/YYYY"
    MM_YYYY = "MM-YYYY"
    MM_YY = "MM-YY"
    MM_YYYY_SLASH = "MM/YYYY"
    MM_YY_SLASH = "MM/YY"

    @classmethod
    def from_tag(cls, tag: str) -> DateFormat:
        try:
            return cls(str(tag).strip())
        except ValueError:
            raise ValueError(f"unsupported date format: {tag!r}") from None

    @property
    def pattern(self) -> re.Pattern[str]:
        return _DATE_GRAMMARS[self][0]

    @property
    def example(self) -> str:
        return _DATE_GRAMMARS[self][1]

    @property
    def separator(self) -> str:
        return "/" if "/" in self.value else "-"

    @property
    def fields(self) -> tuple[str, ...]:
        """Field order, e.g. ('day', 'month', 'year')."""
        names = {"DD": "day", "MM": "month", "YYYY": "year", "YY": "year"}
        return tuple(names[part] for part in self.value.split(self.separator))

    @property
    def year_digits(self) -> int:
        return 4 if "YYYY" in self.value else 2


_DAY = r"(0[1-9]|[12][0-9]|3[01])"
_MONTH = r"(0[1-9]|1[0-2])"

_DATE_GRAMMARS: dict[DateFormat, tuple[re.Pattern[str], str]] = {
    DateFormat.DD_MM_YYYY: (re.compile(rf"^{_DAY}-{_MONTH}-[0-9]{{4}}$"), "01-12-2025"),
    DateFormat.MM_DD_YYYY: (re.compile(rf"^{_MONTH}-{_DAY}-[0-9]{{4}}$"), "12-01-2025"),
    DateFormat.MM_DD_YYYY_SLASH: (re.compile(rf"^{_MONTH}/{_DAY}/[0-9]{{4}}$"), "12/01/2025"),
    DateFormat.DD_MM_YYYY_SLASH: (re.compile(rf"^{_DAY}/{_MONTH}/[0-9]{{4}}$"), "01/12/2025"),
    DateFormat.MM_YYYY: (re.compile(rf"^{_MONTH}-[0-9]{{4}}$"), "12-2025"),
    DateFormat.MM_YY: (re.compile(rf"^{_MONTH}-[0-9]{{2}}$"), "12-25"),
    DateFormat.MM_YYYY_SLASH: (re.compile(rf"^{_MONTH}/[0-9]{{4}}$"), "12/2025"),
    DateFormat.MM_YY_SLASH: (re.compile(rf"^{_MONTH}/[0-9]{{2}}$"), "12/25"),
}


@dataclass(frozen=True)
class RequiredRule:
    """Mandatory on every column; never removable."""

    @property
    def identifier(self) -> str:
        return "Required"


@dataclass(frozen=True)
class TypeRule:
    kind: TypeKind

    @property
    def identifier(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class DateRule:
    source_format: DateFormat

    @property
    def identifier(self) -> str:
        return f"Date({self.source_format.value})"


@dataclass(frozen=True)
class TransformDateRule:
    target_format: DateFormat

    @property
    def identifier(self) -> str:
        return f"Transform-Date({self.target_format.value})"


@dataclass(frozen=True)
class CustomRule:
    """User-authored formula rule owned by one template and one primary column.

    ``is_active`` is toggled explicitly and is independent of deletion.
    """
    rule_name: str
    column_name: str
    formula: tuple[Token, ...]
    rule_id: int | None = None
    template_id: int | None = None
    is_active: bool = True
    description: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "column_name", normalize_column(self.column_name))
        object.__setattr__(self, "formula", tuple(self.formula))

    @property
    def identifier(self) -> str:
        return self.rule_name


Rule = Union[RequiredRule, TypeRule, DateRule, TransformDateRule, CustomRule]

REQUIRED = RequiredRule()


def is_primary_rule(rule: Rule) -> bool:
    """Generic type rules and Date rules share the single primary slot."""
    return isinstance(rule, (TypeRule, DateRule))


def column_type(rules: tuple[Rule, ...] | list[Rule]) -> str:
    """Declared data type of a column, derived from its primary rule."""
    for rule in rules:
        if isinstance(rule, TypeRule):
            return rule.kind.value
        if isinstance(rule, DateRule):
            return "Date"
    return UNKNOWN_TYPE


def parse_rule_identifier(identifier: str, custom_rules: Mapping[str, CustomRule] | None = None) -> Rule:
    """Turn a persisted rule identifier back into a typed rule.

    Raises:
        ValueError: unknown identifier or unsupported date format
    """
    ident = str(identifier).strip()
    if ident == "Required":
        return REQUIRED
    for kind in TypeKind:
        if ident == kind.value:
            return TypeRule(kind)
    m = _DATE_IDENTIFIER.match(ident)
    if m:
        return DateRule(DateFormat.from_tag(m.group("fmt")))
    m = _TRANSFORM_IDENTIFIER.match(ident)
    if m:
        return TransformDateRule(DateFormat.from_tag(m.group("fmt")))
    if custom_rules and ident in custom_rules:
        return custom_rules[ident]
    raise ValueError(f"unknown rule: {identifier!r}")

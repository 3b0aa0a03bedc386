from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

"""Typed formula tokens for custom (formula) rules.

Formulas are authored as an ordered list of dragged items: quoted column
references (``'qty'``), integer literals, arithmetic operators, logical
operators and comparison operators. They are tokenized once when the rule is
authored or loaded, so evaluation never re-parses strings.

Persisted form (rule ``parameters``):
- comparison shape:          ``'qty' <= 200`` / ``'cgst' <= 'gst'``
- arithmetic/logical shape:  ``'total' = 'a' + 'b'``
"""

__all__ = [
    "ARITHMETIC_OPERATORS",
    "COMPARISON_OPERATORS",
    "LOGICAL_OPERATORS",
    "FormulaError",
    "Token",
    "TokenKind",
    "formula_to_parameters",
    "is_comparison_shape",
    "parameters_to_formula",
    "tokenize",
]

ARITHMETIC_OPERATORS = ("+", "-", "/", "%", "*")
LOGICAL_OPERATORS = ("AND", "OR")
COMPARISON_OPERATORS = ("=", ">", "<", ">=", "<=")

_INT_LITERAL = re.compile(r"-?[0-9]+")
# quoted column names may contain spaces ('number 1'), so split on quotes first
_PARAMETER_ITEM = re.compile(r"'[^']*'|>=|<=|\S+")


class FormulaError(Exception):
    """Raised when a formula is malformed (authoring-time configuration error)."""


class TokenKind(Enum):
    COLUMN_REF = "column"
    INT_LITERAL = "int"
    ARITH_OP = "arithmetic"
    LOGICAL_OP = "logical"
    COMPARISON_OP = "comparison"


@dataclass(frozen=True)
class Token:
    """Single formula token.

    ``text`` holds the normalized column name (unquoted, lower-case) for
    column references, the literal digits for integers and the operator
    symbol otherwise.
    """
    kind: TokenKind
    text: str

    @property
    def is_operator(self) -> bool:
        return self.kind in (TokenKind.ARITH_OP, TokenKind.LOGICAL_OP, TokenKind.COMPARISON_OP)

    @property
    def is_operand(self) -> bool:
        return not self.is_operator

    def render(self) -> str:
        if self.kind is TokenKind.COLUMN_REF:
            return f"'{self.text}'"
        return self.text


def _to_token(raw: object) -> Token:
    if isinstance(raw, Token):
        return raw
    if isinstance(raw, bool):
        raise FormulaError(f"unrecognised formula token: {raw!r}")
    if isinstance(raw, int):
        return Token(TokenKind.INT_LITERAL, str(raw))
    s = str(raw).strip()
    if len(s) >= 2 and s.startswith("'") and s.endswith("'"):
        name = s[1:-1].strip().lower()
        if not name:
            raise FormulaError("column reference must name a column")
        return Token(TokenKind.COLUMN_REF, name)
    if _INT_LITERAL.fullmatch(s):
        return Token(TokenKind.INT_LITERAL, str(int(s)))
    if s.upper() in LOGICAL_OPERATORS:
        return Token(TokenKind.LOGICAL_OP, s.upper())
    if s in ARITHMETIC_OPERATORS:
        return Token(TokenKind.ARITH_OP, s)
    if s in COMPARISON_OPERATORS:
        return Token(TokenKind.COMPARISON_OP, s)
    raise FormulaError(f"unrecognised formula token: {raw!r}")


def tokenize(items: Iterable[object]) -> tuple[Token, ...]:
    """Convert dragged formula items into typed tokens.

    Raises:
        FormulaError: on an unknown item
    """
    return tuple(_to_token(item) for item in items)


def is_comparison_shape(tokens: tuple[Token, ...]) -> bool:
    """Two tokens: a comparison operator followed by an integer or a column."""
    return (
        len(tokens) == 2
        and tokens[0].kind is TokenKind.COMPARISON_OP
        and tokens[1].kind in (TokenKind.INT_LITERAL, TokenKind.COLUMN_REF)
    )


def formula_to_parameters(column_name: str, tokens: tuple[Token, ...]) -> str:
    """Render a formula to its persisted parameter string."""
    column = column_name.strip().lower()
    dragged = " ".join(t.render() for t in tokens)
    if is_comparison_shape(tokens):
        return f"'{column}' {dragged}"
    return f"'{column}' = {dragged}"


def parameters_to_formula(parameters: str) -> tuple[str, tuple[Token, ...]]:
    """Parse a persisted parameter string back to (primary column, tokens).

    Raises:
        FormulaError: if the string does not start with a quoted column or
            has neither persisted shape
    """
    items = _PARAMETER_ITEM.findall(parameters or "")
    if len(items) < 2:
        raise FormulaError(f"invalid formula parameters: {parameters!r}")
    head = _to_token(items[0])
    if head.kind is not TokenKind.COLUMN_REF:
        raise FormulaError(f"formula parameters must start with a quoted column: {parameters!r}")
    rest = tokenize(items[1:])
    if is_comparison_shape(rest):
        return head.text, rest
    if rest[0].kind is TokenKind.COMPARISON_OP and rest[0].text == "=" and len(rest) > 1:
        return head.text, rest[1:]
    raise FormulaError(f"invalid formula parameters: {parameters!r}")

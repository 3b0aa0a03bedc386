from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping

from ..models.formula import FormulaError, Token, TokenKind, is_comparison_shape, tokenize
from ..models.row_data import RowData, is_empty_value
from ..models.rules import UNKNOWN_TYPE, normalize_column

"""Formula evaluator for custom rules.

Two formula shapes exist:

- comparison: ``[op, operand]`` compares the rule's primary column against an
  integer literal or another column (``<= 200``, ``= 'gst'``)
- arithmetic/logical: an operand/operator chain evaluated strictly left to
  right with no precedence (``'a' + 'b' * 'c'`` is ``(a + b) * c``); the
  primary column must equal the result, as in the stored form
  ``'total' = 'a' + 'b'``. A chain that carries its own comparison operator
  or starts with an operator is coerced to a boolean instead

Evaluation fails closed: a missing column, a non-numeric operand where a
number is needed or division by zero makes the formula unsatisfied.
"""

__all__ = [
    "check_formula",
    "evaluate_expression",
    "evaluate_formula",
]

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"-?[0-9]*\.?[0-9]+")
_EQUALITY_TOLERANCE = 1e-10


class _EvaluationError(Exception):
    """Internal: the row cannot satisfy the formula."""


def _as_tokens(formula: Iterable[object]) -> tuple[Token, ...]:
    items = tuple(formula)
    if all(isinstance(t, Token) for t in items):
        return items  # type: ignore[return-value]
    return tokenize(items)


def _number(value: object) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    if text.lower() == "true":
        return 1
    if text.lower() == "false":
        return 0
    if not _NUMBER.fullmatch(text):
        raise _EvaluationError(f"not a number: {value!r}")
    return float(text) if "." in text else int(text)


def _truth(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return _number(value) != 0


def _operand(token: Token, row: RowData) -> object:
    if token.kind is TokenKind.INT_LITERAL:
        return int(token.text)
    value = row.get(token.text)
    if value is None:
        raise _EvaluationError(f"column not in row: {token.text}")
    if is_empty_value(value):
        raise _EvaluationError(f"column is empty: {token.text}")
    return value


def _compare(op: str, left: object, right: object) -> bool:
    try:
        a, b = _number(left), _number(right)
    except _EvaluationError:
        # 数値にならない場合は '=' の文字列一致だけ許可
        if op == "=":
            return str(left).strip() == str(right).strip()
        raise
    if op == "=":
        return math.isclose(a, b, rel_tol=0.0, abs_tol=_EQUALITY_TOLERANCE)
    if op == ">":
        return a > b
    if op == "<":
        return a < b
    if op == ">=":
        return a >= b
    if op == "<=":
        return a <= b
    raise _EvaluationError(f"unknown comparison operator: {op}")


def _apply(op: Token, left: object, right: object) -> object:
    if op.kind is TokenKind.COMPARISON_OP:
        return _compare(op.text, left, right)
    if op.kind is TokenKind.LOGICAL_OP:
        if op.text == "AND":
            return _truth(left) and _truth(right)
        return _truth(left) or _truth(right)
    a, b = _number(left), _number(right)
    if op.text == "+":
        return a + b
    if op.text == "-":
        return a - b
    if op.text == "*":
        return a * b
    if b == 0:
        raise _EvaluationError("division by zero")
    if op.text == "/":
        return a / b
    return a % b


def evaluate_expression(formula: Iterable[object], primary_column: str, row: RowData) -> object:
    """Evaluate an operand/operator chain strictly left to right.

    A chain that starts with an operator uses the primary column as its
    implicit left operand.

    Raises:
        FormulaError: if the chain cannot be evaluated for this row
    """
    tokens = _as_tokens(formula)
    try:
        return _evaluate(tokens, primary_column, row)
    except _EvaluationError as e:
        raise FormulaError(str(e)) from e


def _evaluate(tokens: tuple[Token, ...], primary_column: str, row: RowData) -> object:
    if not tokens:
        raise _EvaluationError("empty formula")
    if tokens[0].is_operator:
        acc = _operand(Token(TokenKind.COLUMN_REF, normalize_column(primary_column)), row)
        i = 0
    else:
        acc = _operand(tokens[0], row)
        i = 1
    while i < len(tokens):
        op = tokens[i]
        if not op.is_operator or i + 1 >= len(tokens):
            raise _EvaluationError("operator and operand must alternate")
        acc = _apply(op, acc, _operand(tokens[i + 1], row))
        i += 2
    return acc


def _is_assignment_chain(tokens: tuple[Token, ...]) -> bool:
    """Operand-led chain without a comparison: the primary column is checked against it."""
    return tokens[0].is_operand and not any(t.kind is TokenKind.COMPARISON_OP for t in tokens)


def evaluate_formula(formula: Iterable[object], primary_column: str, row: RowData) -> bool:
    """True when the row satisfies the formula; any evaluation problem is False.

    Args:
        formula: tokens (or raw dragged items)
        primary_column: the rule's column (left-hand side of the comparison shape)
        row: the row being validated
    """
    tokens = _as_tokens(formula)
    primary = Token(TokenKind.COLUMN_REF, normalize_column(primary_column))
    try:
        if is_comparison_shape(tokens):
            return bool(_apply(tokens[0], _operand(primary, row), _operand(tokens[1], row)))
        result = _evaluate(tokens, primary_column, row)
        if _is_assignment_chain(tokens):
            # 'total' = 'a' + 'b' の形: 自列が式の結果と一致すること
            return _compare("=", _operand(primary, row), result)
        return _truth(result)
    except _EvaluationError as e:
        logger.debug(f"formula unsatisfied row={row.row_number} column={primary_column}: {e}")
        return False


def check_formula(
    formula: Iterable[object],
    primary_column: str,
    column_types: Mapping[str, str] | None = None,
) -> tuple[Token, ...]:
    """Authoring-time checks on a formula; returns the typed tokens.

    Raises:
        FormulaError: consecutive operators, a literal not following an
            operator, a missing column or operator, or a type mismatch
            between the primary column and a referenced column
    """
    tokens = _as_tokens(formula)
    if not tokens:
        raise FormulaError("Rule name, column, and a valid formula are required.")
    for prev, cur in zip(tokens, tokens[1:]):
        if prev.is_operator and cur.is_operator:
            raise FormulaError("Cannot place operators consecutively.")
        if prev.is_operand and cur.is_operand:
            raise FormulaError("Operands must be separated by an operator.")
    for i, tok in enumerate(tokens):
        if tok.kind is TokenKind.INT_LITERAL and (i == 0 or not tokens[i - 1].is_operator):
            raise FormulaError("Integer value must follow an operator.")
    if tokens[-1].is_operator:
        raise FormulaError("Formula cannot end with an operator.")

    types = {normalize_column(k): v for k, v in (column_types or {}).items()}
    primary = normalize_column(primary_column)
    primary_type = types.get(primary, UNKNOWN_TYPE)

    if not is_comparison_shape(tokens):
        has_column = any(t.kind is TokenKind.COLUMN_REF for t in tokens)
        has_operator = any(t.kind in (TokenKind.ARITH_OP, TokenKind.LOGICAL_OP) for t in tokens)
        if not (has_column and has_operator):
            raise FormulaError(
                "Formula must include at least one column and one arithmetic or logical operator."
            )

    for tok in tokens:
        if tok.kind is not TokenKind.COLUMN_REF:
            continue
        ref_type = types.get(tok.text, UNKNOWN_TYPE)
        if UNKNOWN_TYPE in (primary_type, ref_type):
            continue
        if ref_type != primary_type:
            raise FormulaError(
                f"Type mismatch: column '{primary}' is {primary_type} but '{tok.text}' is {ref_type}."
            )
    return tokens

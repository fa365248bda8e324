"""
Sandboxed arithmetic formula evaluation for rulebook expressions.

Handles:
- Whole-word variable substitution (longest names first)
- Character whitelist check before anything is evaluated
- Recursive-descent evaluation over + - * / and parentheses in Decimal
- Rulebook rounding methods
"""

from __future__ import annotations

import re
from decimal import (
    ROUND_CEILING,
    ROUND_FLOOR,
    ROUND_HALF_EVEN,
    ROUND_HALF_UP,
    Decimal,
    DivisionByZero,
    InvalidOperation,
)
from typing import Mapping, Optional, Union

from sme_tax.errors import FormulaEvaluationError

Number = Union[int, float, Decimal]

_UNSAFE = re.compile(r"[^0-9+\-*/().\s]")
_TOKEN = re.compile(r"\s*(?:(\d+\.\d*|\.\d+|\d+)|(.))")

MAX_NESTING = 64  # parentheses and unary signs

KOBO = Decimal("0.01")
NAIRA = Decimal("1")

ROUNDING_METHODS: dict[str, tuple[Decimal, str]] = {
    "bankers": (KOBO, ROUND_HALF_EVEN),
    "nearest_naira": (NAIRA, ROUND_HALF_UP),
    "floor": (NAIRA, ROUND_FLOOR),
    "ceil": (NAIRA, ROUND_CEILING),
    "two_decimal": (KOBO, ROUND_HALF_UP),
}


def to_decimal(value: Number) -> Decimal:
    """Convert a numeric value to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormulaEvaluationError(f"Not a numeric value: {value!r}")
    return Decimal(str(value))


def apply_rounding(amount: Decimal, method: Optional[str]) -> Decimal:
    """Round an amount with a rulebook rounding method (None leaves it as is)."""
    if method is None:
        return amount
    try:
        quantum, mode = ROUNDING_METHODS[method]
    except KeyError:
        raise FormulaEvaluationError(f"Unknown rounding method: {method}") from None
    return amount.quantize(quantum, rounding=mode)


def substitute(formula: str, variables: Mapping[str, Number]) -> str:
    """Replace whole-word variable names with their parenthesised values."""
    processed = formula
    for name in sorted(variables, key=len, reverse=True):
        value = to_decimal(variables[name])
        literal = f"({format(value, 'f')})"
        processed = re.sub(
            rf"\b{re.escape(name)}\b", lambda _m: literal, processed
        )
    return processed


class _Parser:
    """Recursive-descent parser for the closed arithmetic grammar.

    expr   := term (('+' | '-') term)*
    term   := factor (('*' | '/') factor)*
    factor := ('+' | '-') factor | NUMBER | '(' expr ')'
    """

    def __init__(self, text: str) -> None:
        self.tokens: list[str] = []
        for number, op in _TOKEN.findall(text):
            if number:
                self.tokens.append(number)
            elif op.strip():
                self.tokens.append(op)
        self.pos = 0
        self.depth = 0

    def _peek(self) -> Optional[str]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise FormulaEvaluationError("Unexpected end of formula")
        self.pos += 1
        return token

    def parse(self) -> Decimal:
        if not self.tokens:
            raise FormulaEvaluationError("Empty formula")
        value = self._expr()
        if self._peek() is not None:
            raise FormulaEvaluationError(f"Unexpected token: {self._peek()!r}")
        return value

    def _expr(self) -> Decimal:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._take() == "+":
                value += self._term()
            else:
                value -= self._term()
        return value

    def _term(self) -> Decimal:
        value = self._factor()
        while self._peek() in ("*", "/"):
            op = self._take()
            rhs = self._factor()
            if op == "*":
                value *= rhs
            else:
                if rhs == 0:
                    raise FormulaEvaluationError("Division by zero")
                value /= rhs
        return value

    def _factor(self) -> Decimal:
        token = self._take()
        if token in ("-", "+", "("):
            self.depth += 1
            if self.depth > MAX_NESTING:
                raise FormulaEvaluationError(f"Formula nested deeper than {MAX_NESTING} levels")
            try:
                if token == "-":
                    return -self._factor()
                if token == "+":
                    return self._factor()
                value = self._expr()
                if self._take() != ")":
                    raise FormulaEvaluationError("Unbalanced parentheses")
                return value
            finally:
                self.depth -= 1
        if token[0].isdigit() or token[0] == ".":
            return Decimal(token)
        raise FormulaEvaluationError(f"Unexpected token: {token!r}")


class FormulaEvaluator:
    """
    Evaluates rulebook formulas against a variable context.

    The substituted text is rejected outright if any character outside
    digits, arithmetic operators, parentheses, dots and whitespace remains.
    """

    def __init__(self, variables: Optional[Mapping[str, Number]] = None) -> None:
        self.variables: dict[str, Number] = dict(variables or {})

    def evaluate(
        self,
        formula: str,
        variables: Optional[Mapping[str, Number]] = None,
    ) -> Decimal:
        context = {**self.variables, **(variables or {})}
        processed = substitute(formula, context)

        unsafe = _UNSAFE.search(processed)
        if unsafe:
            raise FormulaEvaluationError(
                f"Unsafe character {unsafe.group()!r} in formula: {formula}"
            )

        try:
            return _Parser(processed).parse()
        except (InvalidOperation, DivisionByZero) as e:
            raise FormulaEvaluationError(f"Cannot evaluate {formula}: {e}") from e
        except RecursionError as e:
            raise FormulaEvaluationError(f"Formula too deeply nested: {formula[:40]}") from e


def evaluate_formula(formula: str, variables: Mapping[str, Number]) -> Decimal:
    """Evaluate a formula once; see FormulaEvaluator."""
    return FormulaEvaluator(variables).evaluate(formula)

"""
Arithmetic expression evaluator for the calculator tool.

A tokenizer plus a recursive-descent parser; nothing is ever compiled or
executed. Grammar (lowest to highest precedence):

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/" | "%") unary)*
    unary      := ("+" | "-") unary | power
    power      := atom (("**" | "^") unary)?        # right associative
    atom       := NUMBER | "(" expression ")"

Unary minus binds looser than power, so ``-2 ** 2 == -4``.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Union

from iogmcp.exceptions import InvalidInputError

__all__ = ["evaluate_expression", "MAX_EXPRESSION_LENGTH"]

MAX_EXPRESSION_LENGTH = 256
MAX_NESTING_DEPTH = 64
# Larger exponents are refused rather than computed
MAX_EXPONENT = 10_000

_TOKEN_PATTERN = re.compile(
    r"\s*(?:"
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<op>\*\*|[-+*/%^()])"
    r")"
)

Number = Union[int, float]


@dataclass(frozen=True)
class _Token:
    kind: str  # "number", "op" or "end"
    value: str
    position: int


def _tokenize(expression: str) -> List[_Token]:
    tokens: List[_Token] = []
    position = 0
    length = len(expression)

    while position < length:
        if expression[position].isspace():
            position += 1
            continue
        match = _TOKEN_PATTERN.match(expression, position)
        if match is None or match.end() == position:
            raise InvalidInputError(
                f"Unexpected character '{expression[position]}' at position {position}",
                field="expression",
                value=expression,
            )
        kind = "number" if match.group("number") is not None else "op"
        start = match.start(kind)
        tokens.append(_Token(kind, match.group(kind), start))
        position = match.end()

    tokens.append(_Token("end", "", length))
    return tokens


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.index = 0
        self.depth = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _error(self, message: str) -> InvalidInputError:
        return InvalidInputError(message, field="expression", value=self.expression)

    def parse(self) -> Number:
        if self.current.kind == "end":
            raise self._error("Expression is empty")
        value = self._expression()
        if self.current.kind != "end":
            token = self.current
            if token.value == ")":
                raise self._error(f"Unbalanced ')' at position {token.position}")
            raise self._error(f"Unexpected '{token.value}' at position {token.position}")
        return value

    def _expression(self) -> Number:
        value = self._term()
        while self.current.kind == "op" and self.current.value in ("+", "-"):
            op = self._advance().value
            right = self._term()
            value = value + right if op == "+" else value - right
        return value

    def _term(self) -> Number:
        value = self._unary()
        while self.current.kind == "op" and self.current.value in ("*", "/", "%"):
            op = self._advance().value
            right = self._unary()
            if op == "*":
                value = value * right
            elif right == 0:
                raise self._error("Division by zero" if op == "/" else "Modulo by zero")
            elif op == "/":
                value = value / right
            else:
                value = value % right
        return value

    def _unary(self) -> Number:
        if self.current.kind == "op" and self.current.value in ("+", "-"):
            op = self._advance().value
            self._enter()
            operand = self._unary()
            self.depth -= 1
            return -operand if op == "-" else operand
        return self._power()

    def _power(self) -> Number:
        base = self._atom()
        if self.current.kind == "op" and self.current.value in ("**", "^"):
            self._advance()
            self._enter()
            exponent = self._unary()
            self.depth -= 1
            if abs(exponent) > MAX_EXPONENT:
                raise self._error(f"Exponent {exponent} is too large")
            if base == 0 and exponent < 0:
                raise self._error("Division by zero")
            # Float power keeps huge integer towers from running unbounded
            try:
                result = float(base) ** exponent
            except OverflowError:
                raise self._error("Result is too large")
            if isinstance(result, complex):
                raise self._error("Result is not a real number")
            return result
        return base

    def _atom(self) -> Number:
        token = self.current
        if token.kind == "number":
            self._advance()
            text = token.value
            if any(c in text for c in ".eE"):
                return float(text)
            return int(text)
        if token.kind == "op" and token.value == "(":
            self._advance()
            self._enter()
            value = self._expression()
            self.depth -= 1
            if self.current.value != ")" or self.current.kind != "op":
                raise self._error(f"Missing ')' for '(' at position {token.position}")
            self._advance()
            return value
        if token.kind == "end":
            raise self._error("Unexpected end of expression")
        raise self._error(f"Unexpected '{token.value}' at position {token.position}")

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise self._error("Expression is nested too deeply")


def evaluate_expression(expression: str) -> Number:
    """
    Evaluate an arithmetic expression.

    Supports numeric literals (``42``, ``3.5``, ``.5``, ``1e3``), ``+ - * / %``,
    ``**``/``^`` for powers, unary signs and parentheses.

    Raises:
        InvalidInputError: empty/over-long input, bad syntax, division by zero
            or a non-finite result
    """
    if not isinstance(expression, str):
        raise InvalidInputError("Expression must be a string", field="expression", value=expression)
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise InvalidInputError(
            f"Expression is longer than {MAX_EXPRESSION_LENGTH} characters", field="expression"
        )

    result = _Parser(expression).parse()

    if isinstance(result, float):
        if not math.isfinite(result):
            raise InvalidInputError("Result is not a finite number", field="expression", value=expression)
        if result.is_integer() and abs(result) < 2 ** 53:
            return int(result)
    return result

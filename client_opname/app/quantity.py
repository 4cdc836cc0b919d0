"""
Quantity entry: a restricted arithmetic evaluator and the field state that
drives live preview and commit.

Accepted input is digits, decimal points, `+`, `-` and one multiplication
glyph (`*`, `x`, `X` or `×`). There are no parentheses; multiplication binds
tighter than addition and subtraction, and an operand after an operator may
be signed. Results are rounded to the nearest integer and never negative.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from shared.errors import ValidationError


MULTIPLY_GLYPHS = re.compile(r"[xX×]")
WHITESPACE = re.compile(r"\s+")
ALLOWED = re.compile(r"^[0-9+\-*.]+$")
OPERATOR_PRESENT = re.compile(r"[+\-*xX×]")
TOKEN = re.compile(r"\d+(?:\.\d+)?|[+\-*]")
SIGNS = ("+", "-")


def normalize_expression(text: str) -> str:
    return WHITESPACE.sub("", MULTIPLY_GLYPHS.sub("*", text or ""))


def has_operator(text: str) -> bool:
    return bool(OPERATOR_PRESENT.search(text or ""))


def tokenize(expression: str) -> List[str]:
    """Split a normalized expression into alternating numbers and operators.

    An operand right after an operator may carry one sign (`10+-5`, `5*-1`).
    A sign repeating its operator (`5++5`, `5--5`) stays invalid.
    """
    if not expression or not ALLOWED.match(expression):
        raise ValidationError("Quantity may only contain digits, + - x and .")
    if not (expression[0].isdigit() and expression[-1].isdigit()):
        raise ValidationError("Quantity must start and end with a digit")

    raw = TOKEN.findall(expression)
    if "".join(raw) != expression:
        raise ValidationError("Malformed number in quantity", details={"expression": expression})

    tokens: List[str] = []
    position = 0
    while position < len(raw):
        token = raw[position]
        expects_number = len(tokens) % 2 == 0
        if expects_number and token in SIGNS and tokens and tokens[-1] + token not in ("++", "--"):
            following = raw[position + 1] if position + 1 < len(raw) else ""
            if following[:1].isdigit():
                token += following
                position += 1
        if expects_number != token.lstrip("+-")[:1].isdigit():
            raise ValidationError("Operators must sit between numbers", details={"expression": expression})
        tokens.append(token)
        position += 1
    return tokens


def evaluate(expression: str) -> int:
    """Evaluate a normalized expression as a sum of product terms.

    Raises ValidationError for anything that is not a well-formed expression.
    """
    tokens = tokenize(expression)

    total = 0.0
    sign = 1.0
    term = float(tokens[0])
    for operator, operand in zip(tokens[1::2], tokens[2::2]):
        value = float(operand)
        if operator == "*":
            term *= value
            continue
        total += sign * term
        sign = 1.0 if operator == "+" else -1.0
        term = value
    total += sign * term

    if not math.isfinite(total):
        raise ValidationError("Quantity is not a finite number")
    return max(0, math.floor(total + 0.5))


def calc_quantity(text: str) -> Optional[int]:
    """Evaluate free text; None when it is not a valid quantity."""
    try:
        return evaluate(normalize_expression(text))
    except ValidationError:
        return None


@dataclass
class QuantityField:
    """Editable quantity with live preview and an auditable formula."""

    value: int = 0
    formula: str = ""
    display: str = "0"
    _committed: bool = False

    def focus(self) -> None:
        if self.display == "0":
            self.display = ""

    def set_text(self, text: str) -> Optional[int]:
        """Replace the raw text; plain numbers update the value immediately."""
        self._committed = False
        self.display = text
        if not has_operator(text):
            number = calc_quantity(text)
            if number is not None:
                self.value = number
        return self.preview

    def insert_operator(self, operator: str) -> None:
        """Append an operator, replacing a trailing one."""
        current = "" if self.display == "0" else self.display
        if current and OPERATOR_PRESENT.match(current[-1]):
            current = current[:-1]
        self.set_text(current + operator)

    @property
    def preview(self) -> Optional[int]:
        """Result shown while typing; only for expressions, None when incomplete."""
        if not has_operator(self.display):
            return None
        return calc_quantity(self.display)

    def commit(self) -> Tuple[int, str]:
        """Settle the field on blur or confirm. Returns (quantity, formula)."""
        if self._committed:
            return self.value, self.formula

        text = self.display.strip()
        result = calc_quantity(text)
        if result is not None and has_operator(text):
            self.value = result
            self.formula = f"{text}={result}"
        elif result is not None:
            self.value = result
            self.formula = ""
        else:
            self.value = 0
            self.formula = ""

        self.display = str(self.value)
        self._committed = True
        return self.value, self.formula

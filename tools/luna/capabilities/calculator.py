"""Arithmetic on numbers written in the utterance.

The expression is evaluated by walking its AST with a whitelist of
operators; nothing is ever passed to eval().
"""

from __future__ import annotations

import ast
import operator
import re
from typing import Any, Callable

from tools.luna.errors import CapabilityInputError
from tools.luna.models import AppContext, CapabilityOutput, Intent

MAX_EXPONENT = 100
MAX_EXPRESSION_LENGTH = 200

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

# Spoken operators -> symbols, applied in order
_WORD_OPERATORS: list[tuple[str, str]] = [
    (r"\bmultiplied\s+by\b", "*"),
    (r"\bdivided\s+by\b", "/"),
    (r"\btimes\b", "*"),
    (r"\bplus\b", "+"),
    (r"\bminus\b", "-"),
    (r"\bover\b", "/"),
    (r"%\s*of\b|\bpercent\s+of\b", "/100*"),
    (r"(?<=\d)\s*x\s*(?=\d)", "*"),
    ("×", "*"),
    ("÷", "/"),
    (r"\^", "**"),
]

_EXPRESSION_RUN = re.compile(r"[\d.\s+\-*/()%]+")


def extract_expression(text: str) -> str:
    """Find the arithmetic in an utterance ("what's 25 x 8?" -> "25*8")."""
    expr = text.lower()
    expr = re.sub(r"(?<=\d),(?=\d{3}\b)", "", expr)  # 1,000 -> 1000
    for pattern, replacement in _WORD_OPERATORS:
        expr = re.sub(pattern, replacement, expr)

    runs = [
        run.strip() for run in _EXPRESSION_RUN.findall(expr)
        if re.search(r"\d", run) and re.search(r"\d\s*(?:[+\-*/%])", run)
    ]
    if not runs:
        raise CapabilityInputError("no arithmetic expression found")

    expression = max(runs, key=len)
    # Leading zeros are a syntax error for Python ints ("08")
    expression = re.sub(r"(?<![\d.])0+(?=\d)", "", expression)
    return re.sub(r"\s+", "", expression)


def evaluate_expression(expression: str) -> int | float:
    """Safely evaluate an arithmetic expression.

    Raises CapabilityInputError for anything that is not plain arithmetic.
    ZeroDivisionError and OverflowError propagate.
    """
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise CapabilityInputError("expression too long")
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as e:
        raise CapabilityInputError(f"not an arithmetic expression: {expression!r}") from e
    return _eval(tree.body)


def _eval(node: ast.AST) -> int | float:
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value

    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left = _eval(node.left)
        right = _eval(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise CapabilityInputError("exponent too large")
        return _BIN_OPS[type(node.op)](left, right)

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval(node.operand))

    raise CapabilityInputError(f"unsupported syntax: {type(node).__name__}")


def format_number(value: int | float) -> str:
    """Integral results print without a decimal point: 200.0 -> "200"."""
    if isinstance(value, complex):
        raise CapabilityInputError("complex result")
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.10g}"
    return str(value)


def handle_calculate(intent: Intent, raw_input: str, context: AppContext) -> CapabilityOutput:
    expression = extract_expression(raw_input)
    result = evaluate_expression(expression)
    return CapabilityOutput(
        content=format_number(result),
        suggested_actions=("Save result", "Add to notes", "Use in task"),
        cacheable=True,
    )

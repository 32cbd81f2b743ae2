"""Safe arithmetic evaluation with mathjs-style syntax.

Expressions are parsed with :mod:`ast` and walked node by node; nothing is
ever handed to ``eval``.  ``^`` is exponentiation (as in mathjs), and the
usual math functions and the constants ``pi`` and ``e`` are available.
"""

from __future__ import annotations

import ast
import math
import operator
import re
from typing import Callable


class CalculationError(ValueError):
    """Raised when an expression cannot be parsed or evaluated."""


_CONSTANTS: dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
    "PI": math.pi,
    "E": math.e,
}


def _round_half_away(value: float, digits: float = 0) -> float:
    # mathjs rounds halves away from zero
    if not math.isfinite(value):
        return value
    factor = 10.0 ** int(digits)
    return math.copysign(math.floor(abs(value) * factor + 0.5) / factor, value)


_FUNCTIONS: dict[str, Callable[..., float]] = {
    "sqrt": math.sqrt,
    "abs": abs,
    "round": _round_half_away,
    "floor": math.floor,
    "ceil": math.ceil,
    "exp": math.exp,
    "log": math.log,
    "log10": math.log10,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}


def _divide(left: float, right: float) -> float:
    # IEEE semantics, like JavaScript numbers
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _modulo(left: float, right: float) -> float:
    if right == 0:
        return math.nan
    try:
        # floored, like mathjs mod: -5 % 3 == 1
        return left - right * math.floor(left / right)
    except (OverflowError, ValueError):
        return math.nan


def _power(left: float, right: float) -> float:
    try:
        result = left**right
    except OverflowError:
        return math.inf
    except ZeroDivisionError:
        # 0 ^ -n
        return math.inf
    if isinstance(result, complex):
        return math.nan
    return result


_EXPONENT_PADDING = re.compile(r"e([+-])0+(?=\d)")

_BINARY_OPERATORS: dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _divide,
    ast.Mod: _modulo,
    ast.Pow: _power,
}

_UNARY_OPERATORS: dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _evaluate_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate_node(node.body)

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise CalculationError(f"Unexpected value {node.value!r}")
        try:
            return float(node.value)
        except OverflowError:
            return math.inf

    if isinstance(node, ast.Name):
        if node.id in _CONSTANTS:
            return _CONSTANTS[node.id]
        raise CalculationError(f'Undefined symbol "{node.id}"')

    if isinstance(node, ast.BinOp):
        op = _BINARY_OPERATORS.get(type(node.op))
        if op is None:
            raise CalculationError(f"Unsupported operator {type(node.op).__name__}")
        return op(_evaluate_node(node.left), _evaluate_node(node.right))

    if isinstance(node, ast.UnaryOp):
        op = _UNARY_OPERATORS.get(type(node.op))
        if op is None:
            raise CalculationError(f"Unsupported operator {type(node.op).__name__}")
        return op(_evaluate_node(node.operand))

    if isinstance(node, ast.Call):
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
            name = getattr(node.func, "id", type(node.func).__name__)
            raise CalculationError(f'Undefined function "{name}"')
        if node.keywords:
            raise CalculationError("Keyword arguments are not supported")
        args = [_evaluate_node(arg) for arg in node.args]
        try:
            return float(_FUNCTIONS[node.func.id](*args))
        except (TypeError, ValueError, OverflowError) as exc:
            raise CalculationError(f"{node.func.id}: {exc}") from exc

    raise CalculationError(f"Unsupported expression element {type(node).__name__}")


def evaluate(expression: str) -> float:
    """Evaluate ``expression`` and return a float.

    Raises:
        CalculationError: On syntax errors, unsupported constructs, or
            expressions nested too deeply to walk.
    """
    source = expression.strip().replace("^", "**")
    if not source:
        raise CalculationError("Empty expression")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise CalculationError(f"Syntax error in expression: {exc.msg}") from exc
    except (RecursionError, MemoryError) as exc:
        raise CalculationError("Expression is too deeply nested") from exc

    try:
        return _evaluate_node(tree)
    except (RecursionError, MemoryError) as exc:
        raise CalculationError("Expression is too deeply nested") from exc


def format_number(value: float) -> str:
    """Render a float the way JavaScript's ``Number#toString`` does."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    # 1e-07 -> 1e-7
    return _EXPONENT_PADDING.sub(r"e\1", repr(value))

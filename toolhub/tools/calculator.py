"""Calculator tool: evaluates arithmetic expressions without ``eval``."""

from __future__ import annotations

import ast
import logging
import math
import operator

from langchain_core.tools import tool

logger = logging.getLogger(__name__)

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
_FUNCS = {
    "sqrt": math.sqrt,
    "abs": abs,
    "round": round,
    "log": math.log,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}
_CONSTS = {"pi": math.pi, "e": math.e}

# Guard against 9**9**9 style expressions
_MAX_EXPONENT = 1000
_MAX_DIGITS = 4000


def _too_large(base: float, exponent: float) -> bool:
    if isinstance(base, complex) or isinstance(exponent, complex):
        return False
    if abs(base) <= 1 or exponent <= 0:
        return False
    return exponent * math.log10(abs(base)) > _MAX_DIGITS


def _eval(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.Name) and node.id in _CONSTS:
        return _CONSTS[node.id]
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval(node.left), _eval(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("exponent too large")
        if isinstance(node.op, ast.Pow) and _too_large(left, right):
            raise ValueError("result too large")
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval(node.operand))
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id in _FUNCS:
        return _FUNCS[node.func.id](*[_eval(a) for a in node.args])
    raise ValueError(f"unsupported expression: {ast.dump(node)}")


def evaluate(expression: str) -> float:
    return _eval(ast.parse(expression, mode="eval"))


@tool
def calculator(expression: str) -> str:
    """Evaluate an arithmetic expression, e.g. ``2 * (3 + 4)`` or ``sqrt(16)``."""
    try:
        return str(evaluate(expression))
    except (ValueError, TypeError, SyntaxError, ZeroDivisionError, OverflowError) as exc:
        logger.debug("calculator rejected %r: %s", expression, exc)
        return f"Error: {exc}"

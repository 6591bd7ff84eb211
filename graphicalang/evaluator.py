"""Expression evaluation.

``evaluate`` never raises for program content: holes read as 0, unset
variables as NaN, and division or modulo by zero follow IEEE-754 rather than
Python's ZeroDivisionError.
"""

from __future__ import annotations

import math
from typing import Callable, Mapping

from .program import BinOp, Const, ExprId, Not, Program, Var

Bindings = Mapping[str, float]


def _div(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _mod(a: float, b: float) -> float:
    # Result takes the sign of the dividend, like C fmod.
    if b == 0 or math.isinf(a) or math.isnan(a) or math.isnan(b):
        return math.nan
    return math.fmod(a, b)


def _truth(v: float) -> bool:
    # NaN is "true": it is not equal to zero.
    return v != 0


_ARITH: dict[str, Callable[[float, float], float]] = {
    "add": lambda a, b: a + b,
    "sub": lambda a, b: a - b,
    "mul": lambda a, b: a * b,
    "div": _div,
    "mod": _mod,
}

_TEST: dict[str, Callable[[float, float], bool]] = {
    "eq": lambda a, b: a == b,
    "neq": lambda a, b: a != b,
    "lt": lambda a, b: a < b,
    "lte": lambda a, b: a <= b,
    "gt": lambda a, b: a > b,
    "gte": lambda a, b: a >= b,
    "and": lambda a, b: _truth(a) and _truth(b),
    "or": lambda a, b: _truth(a) or _truth(b),
}


def evaluate(program: Program, expr_id: ExprId, variables: Bindings) -> float:
    expr = program.exprs.get(expr_id)
    if expr is None:
        return 0.0
    if isinstance(expr, Const):
        return expr.value
    if isinstance(expr, Var):
        return variables.get(expr.name, math.nan)
    if isinstance(expr, Not):
        return 1.0 if evaluate(program, expr.expr, variables) == 0 else 0.0
    if isinstance(expr, BinOp):
        # Both sides are always evaluated; and/or do not short-circuit.
        lhs = evaluate(program, expr.lhs, variables)
        rhs = evaluate(program, expr.rhs, variables)
        if expr.op in _ARITH:
            return _ARITH[expr.op](lhs, rhs)
        if expr.op in _TEST:
            return 1.0 if _TEST[expr.op](lhs, rhs) else 0.0
    return 0.0


def is_true(value: float) -> bool:
    """Condition test used by if/while."""
    return _truth(value)

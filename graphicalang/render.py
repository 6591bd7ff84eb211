"""Text rendering of programs and of the sprite stage."""

from __future__ import annotations

import math
from dataclasses import dataclass

from rich.style import Style

from .engine import RunningState
from .program import (
    ENTRY,
    Assign,
    BinOp,
    Const,
    ExprId,
    If,
    Not,
    Program,
    Sleep,
    StatId,
    StatListId,
    Var,
    While,
)


# ═══════════════════════════ STYLES ═══════════════════════════

S = Style

BG = S(color="#1a3a2a", bgcolor="#080e0b")
GRID = S(color="#0e2e20", bgcolor="#080e0b")
SPRITE = S(color="#ffcc00", bgcolor="#080e0b", bold=True)

ROW_STYLES = {
    "stat":  S(color="#00ffc8", bold=True),
    "expr":  S(color="#66ffee"),
    "hole":  S(color="#ff8866", italic=True),
    "label": S(color="#1a6a4a"),
    "add":   S(color="#1a6a4a", italic=True),
}
CURSOR = S(color="#00ffee", bgcolor="#0a1a15", bold=True)
EXEC = S(color="#ffee66", bgcolor="#12120a", bold=True)

OP_SYMBOLS = {
    "add": "+", "sub": "-", "mul": "*", "div": "/", "mod": "%",
    "eq": "==", "neq": "!=", "lt": "<", "lte": "<=", "gt": ">", "gte": ">=",
    "and": "and", "or": "or",
}


# ═══════════════════════════ TEXT ═══════════════════════════

def fmt_num(v: float) -> str:
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def format_expr(program: Program, expr_id: ExprId, _seen: frozenset = frozenset()) -> str:
    """Infix text for an expression; holes print as ``?``."""
    expr = program.exprs.get(expr_id)
    if expr is None:
        return "?"
    if expr_id in _seen:
        return "…"
    seen = _seen | {expr_id}

    def sub(eid: ExprId) -> str:
        text = format_expr(program, eid, seen)
        return f"({text})" if isinstance(program.exprs.get(eid), BinOp) else text

    if isinstance(expr, Const):
        return fmt_num(expr.value)
    if isinstance(expr, Var):
        return expr.name
    if isinstance(expr, Not):
        return f"not {sub(expr.expr)}"
    return f"{sub(expr.lhs)} {OP_SYMBOLS[expr.op]} {sub(expr.rhs)}"


def describe_stat(program: Program, stat_id: StatId) -> str:
    stat = program.stats.get(stat_id)
    if stat is None:
        return "(empty)"
    if isinstance(stat, Assign):
        return f"{stat.name} := {format_expr(program, stat.value)}"
    if isinstance(stat, If):
        return f"if {format_expr(program, stat.cond)}"
    if isinstance(stat, While):
        return f"while {format_expr(program, stat.cond)}"
    return f"sleep {format_expr(program, stat.value)}"


# ═══════════════════════════ BLOCK ROWS ═══════════════════════════

@dataclass(frozen=True)
class Row:
    """One line of the block editor.

    ``list_id``/``index`` locate the statement (or, for "add" rows, the list
    a new statement goes into); ``expr_id`` is set on expression rows.
    """
    kind: str
    depth: int
    text: str
    stat_id: StatId | None = None
    list_id: StatListId | None = None
    index: int | None = None
    expr_id: ExprId | None = None


def block_rows(program: Program) -> list[Row]:
    rows: list[Row] = []
    _list_rows(program, ENTRY, 0, rows, frozenset())
    return rows


def _list_rows(
    program: Program, list_id: StatListId, depth: int, rows: list[Row], path: frozenset
) -> None:
    if list_id in path:
        rows.append(Row("label", depth, "(recursive body)"))
        return
    path = path | {list_id}
    for i, stat_id in enumerate(program.stat_list(list_id)):
        _stat_rows(program, stat_id, list_id, i, depth, rows, path)
    rows.append(Row("add", depth, "+ add statement", list_id=list_id))


def _stat_rows(
    program: Program,
    stat_id: StatId,
    list_id: StatListId,
    index: int,
    depth: int,
    rows: list[Row],
    path: frozenset,
) -> None:
    stat = program.stats.get(stat_id)
    loc = dict(stat_id=stat_id, list_id=list_id, index=index)
    if stat is None:
        rows.append(Row("stat", depth, "(empty)", **loc))
        return
    if isinstance(stat, Assign):
        rows.append(Row("stat", depth, f"{stat.name} :=", **loc))
        _expr_rows(program, stat.value, stat_id, depth + 1, rows, frozenset())
    elif isinstance(stat, Sleep):
        rows.append(Row("stat", depth, "sleep (ms)", **loc))
        _expr_rows(program, stat.value, stat_id, depth + 1, rows, frozenset())
    elif isinstance(stat, If):
        rows.append(Row("stat", depth, "if", **loc))
        _expr_rows(program, stat.cond, stat_id, depth + 1, rows, frozenset())
        rows.append(Row("label", depth, "then", stat_id=stat_id))
        _list_rows(program, stat.body1, depth + 1, rows, path)
        rows.append(Row("label", depth, "else", stat_id=stat_id))
        _list_rows(program, stat.body2, depth + 1, rows, path)
    elif isinstance(stat, While):
        rows.append(Row("stat", depth, "while", **loc))
        _expr_rows(program, stat.cond, stat_id, depth + 1, rows, frozenset())
        rows.append(Row("label", depth, "do", stat_id=stat_id))
        _list_rows(program, stat.body, depth + 1, rows, path)


def _expr_rows(
    program: Program, expr_id: ExprId, owner: StatId, depth: int, rows: list[Row], path: frozenset
) -> None:
    expr = program.exprs.get(expr_id)
    if expr is None:
        rows.append(Row("hole", depth, "? ___", stat_id=owner, expr_id=expr_id))
        return
    if expr_id in path:
        rows.append(Row("label", depth, "…", stat_id=owner))
        return
    path = path | {expr_id}
    if isinstance(expr, Const):
        rows.append(Row("expr", depth, fmt_num(expr.value), stat_id=owner, expr_id=expr_id))
    elif isinstance(expr, Var):
        rows.append(Row("expr", depth, f"var {expr.name}", stat_id=owner, expr_id=expr_id))
    elif isinstance(expr, Not):
        rows.append(Row("expr", depth, "not", stat_id=owner, expr_id=expr_id))
        _expr_rows(program, expr.expr, owner, depth + 1, rows, path)
    else:
        rows.append(Row("expr", depth, f"{OP_SYMBOLS[expr.op]}  ({expr.op})",
                        stat_id=owner, expr_id=expr_id))
        _expr_rows(program, expr.lhs, owner, depth + 1, rows, path)
        _expr_rows(program, expr.rhs, owner, depth + 1, rows, path)


# ═══════════════════════════ STAGE ═══════════════════════════

ARROWS = "→↘↓↙←↖↑↗"


def sprite_glyph(angle: float) -> str:
    """Heading arrow; degrees, clockwise, 0 pointing right (screen y is down)."""
    if not math.isfinite(angle):
        return ARROWS[0]
    return ARROWS[round(angle / 45) % 8]


def stage_cell(x: float, y: float, cell_w: int, cell_h: int) -> tuple[int, int] | None:
    """Cell holding pixel (x, y), or None when the position is not a number."""
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    return int(x // cell_w), int(y // cell_h)


def build_stage(
    state: RunningState | None, cols: int, rows: int, cell_w: int, cell_h: int
) -> list[list[tuple[str, Style]]]:
    """Character buffer (cols × rows) of the stage with the sprite drawn."""
    buf = [[(" ", BG) for _ in range(cols)] for _ in range(rows)]
    for r in range(rows):
        for c in range(cols):
            if c % 5 == 0 and r % 3 == 0:
                buf[r][c] = ("·", GRID)

    sv = state.special_variables if state is not None else None
    x, y, angle = (sv.x, sv.y, sv.angle) if sv else (0, 0, 0)
    cell = stage_cell(x, y, cell_w, cell_h)
    if cell is not None:
        c, r = cell
        if 0 <= c < cols and 0 <= r < rows:
            buf[r][c] = (sprite_glyph(angle), SPRITE)
    return buf

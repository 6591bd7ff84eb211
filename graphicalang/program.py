"""Program model: id-indexed AST plus the pure mutation protocol.

Every node is addressed by a string id into one of three flat maps. Any id
may be missing from its map (a "hole"); the evaluator treats holes as
neutral values, so the editor can leave a program half-built at any time.

All mutation functions take a Program and return ``(result, new_program)``
(or just the new program when there is no result). A Program is never
modified in place.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Union

log = logging.getLogger(__name__)

ExprId = str
StatId = str
StatListId = str

ENTRY: StatListId = "entry"


# ═══════════════════════════ ERRORS ═══════════════════════════

class GraphicalangError(Exception):
    pass


class UnknownNodeKind(GraphicalangError, ValueError):
    def __init__(self, family: str, kind: str):
        super().__init__(f"unknown {family} kind: {kind!r}")
        self.family = family
        self.kind = kind


class ProgramFormatError(GraphicalangError, ValueError):
    pass


# ═══════════════════════════ EXPRESSIONS ═══════════════════════════

BINARY_OPS: tuple[str, ...] = (
    "add", "sub", "mul", "div", "mod",
    "eq", "neq", "lt", "lte", "gt", "gte",
    "and", "or",
)

EXPR_KINDS: tuple[str, ...] = ("const", "var") + BINARY_OPS + ("not",)


def to_number(value: float) -> float:
    """Coerce to a double; integers too large for one become ±inf."""
    try:
        return float(value)
    except OverflowError:
        return math.copysign(math.inf, value)


@dataclass(frozen=True)
class Const:
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", to_number(self.value))

    @property
    def type(self) -> str:
        return "const"


@dataclass(frozen=True)
class Var:
    name: str

    @property
    def type(self) -> str:
        return "var"


@dataclass(frozen=True)
class BinOp:
    """Two-operand node; ``op`` is one of BINARY_OPS and doubles as its tag."""
    op: str
    lhs: ExprId
    rhs: ExprId

    @property
    def type(self) -> str:
        return self.op


@dataclass(frozen=True)
class Not:
    expr: ExprId

    @property
    def type(self) -> str:
        return "not"


Expr = Union[Const, Var, BinOp, Not]


# ═══════════════════════════ STATEMENTS ═══════════════════════════

STAT_KINDS: tuple[str, ...] = ("assign", "if", "while", "sleep")


@dataclass(frozen=True)
class Assign:
    name: str
    value: ExprId

    @property
    def type(self) -> str:
        return "assign"


@dataclass(frozen=True)
class If:
    cond: ExprId
    body1: StatListId
    body2: StatListId

    @property
    def type(self) -> str:
        return "if"


@dataclass(frozen=True)
class While:
    cond: ExprId
    body: StatListId

    @property
    def type(self) -> str:
        return "while"


@dataclass(frozen=True)
class Sleep:
    value: ExprId

    @property
    def type(self) -> str:
        return "sleep"


Stat = Union[Assign, If, While, Sleep]


# ═══════════════════════════ PROGRAM ═══════════════════════════

@dataclass(frozen=True)
class Program:
    exprs: dict[ExprId, Expr] = field(default_factory=dict)
    stats: dict[StatId, Stat] = field(default_factory=dict)
    stat_lists: dict[StatListId, tuple[StatId, ...]] = field(
        default_factory=lambda: {ENTRY: ()}
    )
    stat_count: int = 0
    expr_count: int = 0
    stat_list_count: int = 0

    def stat_list(self, list_id: StatListId) -> tuple[StatId, ...]:
        """Statement ids of *list_id*; a missing list reads as empty."""
        return self.stat_lists.get(list_id, ())

    @property
    def entry(self) -> tuple[StatId, ...]:
        return self.stat_list(ENTRY)


def empty_program() -> Program:
    return Program()


# ── id allocation ──

def _next_free(counter: int, taken: dict) -> int:
    while str(counter) in taken:
        counter += 1
    return counter


def allocate_expr_id(program: Program) -> tuple[ExprId, Program]:
    n = _next_free(program.expr_count, program.exprs)
    return str(n), replace(program, expr_count=n + 1)


def allocate_stat_id(program: Program) -> tuple[StatId, Program]:
    n = _next_free(program.stat_count, program.stats)
    return str(n), replace(program, stat_count=n + 1)


def allocate_stat_list_id(program: Program) -> tuple[StatListId, Program]:
    n = _next_free(program.stat_list_count, program.stat_lists)
    return str(n), replace(program, stat_list_count=n + 1)


# ── node binding ──

def register_stat(program: Program, stat: Stat) -> tuple[StatId, Program]:
    stat_id, program = allocate_stat_id(program)
    return stat_id, replace(program, stats={**program.stats, stat_id: stat})


def register_stat_list(
    program: Program, stat_ids: tuple[StatId, ...] | list[StatId] = ()
) -> tuple[StatListId, Program]:
    list_id, program = allocate_stat_list_id(program)
    lists = {**program.stat_lists, list_id: tuple(stat_ids)}
    return list_id, replace(program, stat_lists=lists)


def set_expr(program: Program, expr_id: ExprId, expr: Expr | None) -> Program:
    """Store *expr* at *expr_id*, or turn the slot into a hole when None."""
    exprs = dict(program.exprs)
    if expr is None:
        exprs.pop(expr_id, None)
    else:
        exprs[expr_id] = expr
    return replace(program, exprs=exprs)


def set_stat(program: Program, stat_id: StatId, stat: Stat | None) -> Program:
    stats = dict(program.stats)
    if stat is None:
        stats.pop(stat_id, None)
    else:
        stats[stat_id] = stat
    return replace(program, stats=stats)


# ── default construction ──

def stat_from_type(program: Program, kind: str) -> tuple[Stat, Program]:
    """Build a blank statement of *kind*, reserving its child slots."""
    if kind == "assign":
        value, program = allocate_expr_id(program)
        return Assign("x", value), program
    if kind == "if":
        cond, program = allocate_expr_id(program)
        body1, program = register_stat_list(program)
        body2, program = register_stat_list(program)
        return If(cond, body1, body2), program
    if kind == "while":
        cond, program = allocate_expr_id(program)
        body, program = register_stat_list(program)
        return While(cond, body), program
    if kind == "sleep":
        value, program = allocate_expr_id(program)
        return Sleep(value), program
    raise UnknownNodeKind("statement", kind)


def expr_from_type(program: Program, kind: str) -> tuple[Expr, Program]:
    """Build a blank expression of *kind*; operators get empty operand slots."""
    if kind == "const":
        return Const(0), program
    if kind == "var":
        return Var("x"), program
    if kind in BINARY_OPS:
        lhs, program = allocate_expr_id(program)
        rhs, program = allocate_expr_id(program)
        return BinOp(kind, lhs, rhs), program
    if kind == "not":
        operand, program = allocate_expr_id(program)
        return Not(operand), program
    raise UnknownNodeKind("expression", kind)


# ── statement lists ──

def append_stat_list(
    program: Program, list_id: StatListId, stat_id: StatId
) -> Program:
    """Append *stat_id* to a list. Appending to a missing list changes nothing."""
    if list_id not in program.stat_lists:
        log.debug("append to missing stat list %s ignored", list_id)
        return program
    lists = {**program.stat_lists, list_id: program.stat_lists[list_id] + (stat_id,)}
    return replace(program, stat_lists=lists)


def remove_stat_list_item(
    program: Program, list_id: StatListId, index: int
) -> Program:
    items = program.stat_lists.get(list_id)
    if items is None or not 0 <= index < len(items):
        return program
    lists = {**program.stat_lists, list_id: items[:index] + items[index + 1:]}
    return replace(program, stat_lists=lists)


# ═══════════════════════════ BUILDER ═══════════════════════════

class ProgramBuilder:
    """Owns a Program value and threads it through the pure operations.

    The editor keeps its document in one of these; ``builder.program`` is
    always a complete immutable value that can be handed to ``run``.
    """

    def __init__(self, program: Program | None = None):
        self.program = program if program is not None else empty_program()

    def register_stat(self, stat: Stat) -> StatId:
        stat_id, self.program = register_stat(self.program, stat)
        return stat_id

    def register_stat_list(self, stat_ids: tuple[StatId, ...] | list[StatId] = ()) -> StatListId:
        list_id, self.program = register_stat_list(self.program, stat_ids)
        return list_id

    def set_expr(self, expr_id: ExprId, expr: Expr | None) -> None:
        self.program = set_expr(self.program, expr_id, expr)

    def set_stat(self, stat_id: StatId, stat: Stat | None) -> None:
        self.program = set_stat(self.program, stat_id, stat)

    def stat_from_type(self, kind: str) -> Stat:
        stat, self.program = stat_from_type(self.program, kind)
        return stat

    def expr_from_type(self, kind: str) -> Expr:
        expr, self.program = expr_from_type(self.program, kind)
        return expr

    def append_stat_list(self, list_id: StatListId, stat_id: StatId) -> None:
        self.program = append_stat_list(self.program, list_id, stat_id)

    def remove_stat_list_item(self, list_id: StatListId, index: int) -> None:
        self.program = remove_stat_list_item(self.program, list_id, index)

    # ── editor gestures ──

    def add_stat(self, list_id: StatListId, kind: str) -> StatId:
        """Create a blank statement of *kind* at the end of *list_id*."""
        stat = self.stat_from_type(kind)
        stat_id = self.register_stat(stat)
        self.append_stat_list(list_id, stat_id)
        return stat_id

    def fill_expr(self, expr_id: ExprId, kind: str) -> Expr:
        """Put a blank expression of *kind* into the slot *expr_id*."""
        expr = self.expr_from_type(kind)
        self.set_expr(expr_id, expr)
        return expr

    def const(self, expr_id: ExprId, value: float) -> None:
        self.set_expr(expr_id, Const(value))

    def var(self, expr_id: ExprId, name: str) -> None:
        self.set_expr(expr_id, Var(name))


def example_program() -> Program:
    """Sprite zig-zags across the stage, turning and pausing after every move."""
    b = ProgramBuilder()

    init = b.add_stat(ENTRY, "assign")
    b.set_stat(init, Assign("i", b.program.stats[init].value))
    b.const(b.program.stats[init].value, 0)

    loop = b.add_stat(ENTRY, "while")
    w = b.program.stats[loop]
    cond = b.fill_expr(w.cond, "lt")
    b.var(cond.lhs, "i")
    b.const(cond.rhs, 4)

    for name, op, step in (("x", "add", 100), ("angle", "add", 90)):
        sid = b.add_stat(w.body, "assign")
        b.set_stat(sid, Assign(name, b.program.stats[sid].value))
        e = b.fill_expr(b.program.stats[sid].value, op)
        b.var(e.lhs, name)
        b.const(e.rhs, step)

    turn = b.add_stat(w.body, "if")
    t = b.program.stats[turn]
    odd = b.fill_expr(t.cond, "eq")
    m = b.fill_expr(odd.lhs, "mod")
    b.var(m.lhs, "i")
    b.const(m.rhs, 2)
    b.const(odd.rhs, 1)
    down = b.add_stat(t.body1, "assign")
    b.set_stat(down, Assign("y", b.program.stats[down].value))
    e = b.fill_expr(b.program.stats[down].value, "add")
    b.var(e.lhs, "y")
    b.const(e.rhs, 100)

    pause = b.add_stat(w.body, "sleep")
    b.const(b.program.stats[pause].value, 500)

    inc = b.add_stat(w.body, "assign")
    b.set_stat(inc, Assign("i", b.program.stats[inc].value))
    e = b.fill_expr(b.program.stats[inc].value, "add")
    b.var(e.lhs, "i")
    b.const(e.rhs, 1)

    return b.program

"""JSON persistence of Program values.

The blob uses camelCase field names (``statLists``, ``statCount`` ...).
Holes are simply absent keys; a ``null`` node is read back as a hole.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .program import (
    BINARY_OPS,
    Assign,
    BinOp,
    Const,
    Expr,
    If,
    Not,
    Program,
    ProgramFormatError,
    Sleep,
    Stat,
    Var,
    While,
    empty_program,
)

log = logging.getLogger(__name__)


# ═══════════════════════════ ENCODE ═══════════════════════════

def expr_to_dict(expr: Expr) -> dict[str, Any]:
    if isinstance(expr, Const):
        return {"type": "const", "value": expr.value}
    if isinstance(expr, Var):
        return {"type": "var", "name": expr.name}
    if isinstance(expr, BinOp):
        return {"type": expr.op, "lhs": expr.lhs, "rhs": expr.rhs}
    return {"type": "not", "expr": expr.expr}


def stat_to_dict(stat: Stat) -> dict[str, Any]:
    if isinstance(stat, Assign):
        return {"type": "assign", "name": stat.name, "value": stat.value}
    if isinstance(stat, If):
        return {"type": "if", "cond": stat.cond, "body1": stat.body1, "body2": stat.body2}
    if isinstance(stat, While):
        return {"type": "while", "cond": stat.cond, "body": stat.body}
    return {"type": "sleep", "value": stat.value}


def program_to_dict(program: Program) -> dict[str, Any]:
    return {
        "stats": {k: stat_to_dict(v) for k, v in program.stats.items()},
        "exprs": {k: expr_to_dict(v) for k, v in program.exprs.items()},
        "statLists": {k: list(v) for k, v in program.stat_lists.items()},
        "statCount": program.stat_count,
        "exprCount": program.expr_count,
        "statListCount": program.stat_list_count,
    }


def dumps(program: Program, indent: int | None = None) -> str:
    return json.dumps(program_to_dict(program), indent=indent)


# ═══════════════════════════ DECODE ═══════════════════════════

def _field(d: dict, key: str, kind: type | tuple[type, ...], where: str) -> Any:
    if key not in d:
        raise ProgramFormatError(f"{where}: missing field {key!r}")
    v = d[key]
    if not isinstance(v, kind) or isinstance(v, bool):
        raise ProgramFormatError(f"{where}: field {key!r} has wrong type")
    return v


def expr_from_dict(d: dict[str, Any], where: str = "expr") -> Expr:
    t = d.get("type")
    if t == "const":
        return Const(_field(d, "value", (int, float), where))
    if t == "var":
        return Var(_field(d, "name", str, where))
    if t in BINARY_OPS:
        return BinOp(t, _field(d, "lhs", str, where), _field(d, "rhs", str, where))
    if t == "not":
        return Not(_field(d, "expr", str, where))
    raise ProgramFormatError(f"{where}: unknown expression type {t!r}")


def stat_from_dict(d: dict[str, Any], where: str = "stat") -> Stat:
    t = d.get("type")
    if t == "assign":
        return Assign(_field(d, "name", str, where), _field(d, "value", str, where))
    if t == "if":
        return If(
            _field(d, "cond", str, where),
            _field(d, "body1", str, where),
            _field(d, "body2", str, where),
        )
    if t == "while":
        return While(_field(d, "cond", str, where), _field(d, "body", str, where))
    if t == "sleep":
        return Sleep(_field(d, "value", str, where))
    raise ProgramFormatError(f"{where}: unknown statement type {t!r}")


def _nodes(d: dict, key: str) -> dict[str, dict]:
    raw = _field(d, key, dict, "program")
    out = {}
    for k, v in raw.items():
        if v is None:
            continue  # hole
        if not isinstance(v, dict):
            raise ProgramFormatError(f"{key}[{k}]: expected an object")
        out[k] = v
    return out


def _operands(expr: Expr) -> tuple[str, ...]:
    if isinstance(expr, BinOp):
        return (expr.lhs, expr.rhs)
    if isinstance(expr, Not):
        return (expr.expr,)
    return ()


def _check_expr_cycles(exprs: dict[str, Expr]) -> None:
    """Expressions must form a forest; the evaluator recurses into operands."""
    visiting, done = set(), set()
    for root in exprs:
        if root in done:
            continue
        visiting.add(root)
        stack = [(root, iter(_operands(exprs[root])))]
        while stack:
            eid, operands = stack[-1]
            for child in operands:
                if child not in exprs or child in done:
                    continue
                if child in visiting:
                    raise ProgramFormatError(f"exprs[{child}]: expression contains itself")
                visiting.add(child)
                stack.append((child, iter(_operands(exprs[child]))))
                break
            else:
                stack.pop()
                visiting.discard(eid)
                done.add(eid)


def program_from_dict(d: Any) -> Program:
    if not isinstance(d, dict):
        raise ProgramFormatError("program: expected an object")
    exprs = {k: expr_from_dict(v, f"exprs[{k}]") for k, v in _nodes(d, "exprs").items()}
    _check_expr_cycles(exprs)
    stats = {k: stat_from_dict(v, f"stats[{k}]") for k, v in _nodes(d, "stats").items()}
    lists: dict[str, tuple[str, ...]] = {}
    for k, v in _field(d, "statLists", dict, "program").items():
        if v is None:
            continue
        if not isinstance(v, list) or not all(isinstance(s, str) for s in v):
            raise ProgramFormatError(f"statLists[{k}]: expected a list of ids")
        lists[k] = tuple(v)
    return Program(
        exprs=exprs,
        stats=stats,
        stat_lists=lists,
        stat_count=_field(d, "statCount", int, "program"),
        expr_count=_field(d, "exprCount", int, "program"),
        stat_list_count=_field(d, "statListCount", int, "program"),
    )


def loads(text: str) -> Program:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProgramFormatError(f"invalid JSON: {exc}") from exc
    return program_from_dict(data)


# ═══════════════════════════ STORE ═══════════════════════════

class ProgramStore:
    """One JSON file per storage key under a directory."""

    def __init__(self, directory: Path | str, key: str):
        self.directory = Path(directory)
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Program:
        """Stored program, or an empty one when nothing is stored yet."""
        if not self.exists():
            log.info("no program stored under %s", self.path)
            return empty_program()
        program = loads(self.path.read_text(encoding="utf-8"))
        log.info("loaded program from %s (%d statements)", self.path, len(program.stats))
        return program

    def load_or_empty(self) -> tuple[Program, str | None]:
        """Like load(), but a broken blob yields an empty program and the error text."""
        try:
            return self.load(), None
        except ProgramFormatError as exc:
            log.warning("ignoring unreadable program %s: %s", self.path, exc)
            return empty_program(), str(exc)

    def save(self, program: Program) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".json.tmp")
        tmp.write_text(dumps(program), encoding="utf-8")
        tmp.replace(self.path)
        log.debug("saved program to %s", self.path)

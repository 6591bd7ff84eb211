"""graphicalang — visual block programs replayed one step at a time."""

from .engine import RunningState, SpecialVariables, run
from .evaluator import evaluate
from .player import Player, pause_seconds
from .program import (
    ENTRY,
    Assign,
    BinOp,
    Const,
    GraphicalangError,
    If,
    Not,
    Program,
    ProgramBuilder,
    ProgramFormatError,
    Sleep,
    UnknownNodeKind,
    Var,
    While,
    allocate_expr_id,
    allocate_stat_id,
    allocate_stat_list_id,
    append_stat_list,
    empty_program,
    example_program,
    expr_from_type,
    register_stat,
    register_stat_list,
    remove_stat_list_item,
    set_expr,
    set_stat,
    stat_from_type,
)
from .storage import ProgramStore, dumps, loads

__version__ = "0.1.0"

"""Statement scheduler.

``run`` walks the statement tree and yields a RunningState *before* each
statement takes effect. Nothing is computed until the consumer asks for the
next snapshot, so the caller decides the pace and can simply stop pulling to
cancel a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator

from .evaluator import evaluate, is_true
from .program import Assign, If, Program, Sleep, StatId, StatListId, While

log = logging.getLogger(__name__)

SPECIAL_NAMES: tuple[str, ...] = ("x", "y", "angle")


@dataclass(frozen=True)
class SpecialVariables:
    x: float = 0.0
    y: float = 0.0
    angle: float = 0.0


@dataclass(frozen=True)
class RunningState:
    current_stat: StatId
    variables: tuple[tuple[str, float], ...]
    special_variables: SpecialVariables
    duration: float | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "currentStat": self.current_stat,
            "variables": [[k, v] for k, v in self.variables],
            "specialVariables": {
                "x": self.special_variables.x,
                "y": self.special_variables.y,
                "angle": self.special_variables.angle,
            },
        }
        if self.duration is not None:
            d["duration"] = self.duration
        return d


def _snapshot(
    stat_id: StatId, variables: dict[str, float], duration: float | None = None
) -> RunningState:
    return RunningState(
        current_stat=stat_id,
        variables=tuple(sorted(variables.items())),
        special_variables=SpecialVariables(
            *(variables.get(k, 0.0) for k in SPECIAL_NAMES)
        ),
        duration=duration,
    )


def run(program: Program) -> Iterator[RunningState]:
    """Yield execution snapshots of *program* from its entry list.

    Each call starts with fresh bindings ``x = y = angle = 0``. The iterator
    is infinite when the program does not terminate.
    """
    variables: dict[str, float] = {k: 0.0 for k in SPECIAL_NAMES}
    log.debug("run start: %d top-level statements", len(program.entry))
    steps = 0
    for stat_id in program.entry:
        for state in _run_stat(program, stat_id, variables):
            steps += 1
            yield state
    log.debug("run finished after %d snapshots", steps)


def _run_stat(
    program: Program, stat_id: StatId, variables: dict[str, float]
) -> Iterator[RunningState]:
    yield _snapshot(stat_id, variables)
    stat = program.stats.get(stat_id)
    if stat is None:
        return

    if isinstance(stat, Assign):
        variables[stat.name] = evaluate(program, stat.value, variables)

    elif isinstance(stat, If):
        body = stat.body1 if is_true(evaluate(program, stat.cond, variables)) else stat.body2
        yield from _run_stat_list(program, stat_id, body, variables)

    elif isinstance(stat, While):
        while is_true(evaluate(program, stat.cond, variables)):
            yield from _run_stat_list(program, stat_id, stat.body, variables)

    elif isinstance(stat, Sleep):
        duration = evaluate(program, stat.value, variables)
        yield _snapshot(stat_id, variables, duration)


def _run_stat_list(
    program: Program,
    owner: StatId,
    list_id: StatListId,
    variables: dict[str, float],
) -> Iterator[RunningState]:
    stat_ids = program.stat_list(list_id)
    for stat_id in stat_ids:
        yield from _run_stat(program, stat_id, variables)
    if not stat_ids:
        # Empty body: still show that the branch / iteration happened.
        yield _snapshot(owner, variables)

"""Driving loop: pulls snapshots from ``run`` and paces them in real time."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Awaitable, Callable, Iterator

from .engine import RunningState, run
from .program import Program

log = logging.getLogger(__name__)


def pause_seconds(state: RunningState) -> float:
    """Wait requested by a snapshot, in seconds (durations are milliseconds)."""
    d = state.duration
    if d is None or not math.isfinite(d) or d <= 0:
        return 0.0
    return d / 1000


class Player:
    """Step-through / auto-run driver for one run of a program.

    ``interrupt()`` only sets a flag; it is checked between snapshots, so a
    step that is already being computed always completes.
    """

    def __init__(self, program: Program, step_delay: float = 0.0):
        self.program = program
        self.step_delay = step_delay
        self.state: RunningState | None = None
        self.done = False
        self.steps = 0
        self.playing = False
        self._interrupt = False
        self._states: Iterator[RunningState] = run(program)

    def step(self) -> RunningState | None:
        """Pull one snapshot; None once the program has finished."""
        if self.done:
            return None
        try:
            self.state = next(self._states)
        except StopIteration:
            self.state = None
            self.done = True
            log.debug("program finished after %d steps", self.steps)
            return None
        self.steps += 1
        return self.state

    def interrupt(self) -> None:
        self._interrupt = True

    @property
    def interrupted(self) -> bool:
        return self._interrupt

    async def play(
        self,
        on_state: Callable[[RunningState], object],
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        limit: int | None = None,
    ) -> int:
        """Auto-run until done, interrupted or *limit* snapshots; returns the count.

        An interrupted player keeps its position, so calling play() again
        resumes the same run.
        """
        if self.playing:
            return 0
        self.playing = True
        count = 0
        try:
            while not self._interrupt:
                if limit is not None and count >= limit:
                    break
                state = self.step()
                if state is None:
                    break
                count += 1
                on_state(state)
                await sleep(pause_seconds(state) + self.step_delay)
        finally:
            self.playing = False
            self._interrupt = False
        return count

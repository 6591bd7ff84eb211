import math

import pytest

from graphicalang.engine import RunningState, SpecialVariables, run
from graphicalang.player import Player, pause_seconds
from graphicalang.program import ENTRY, ProgramBuilder, example_program


class FakeClock:
    def __init__(self):
        self.waits = []
        self.hook = None

    async def sleep(self, seconds):
        self.waits.append(seconds)
        if self.hook:
            self.hook()


def endless():
    b = ProgramBuilder()
    wid = b.add_stat(ENTRY, "while")
    w = b.program.stats[wid]
    b.const(w.cond, 1)
    b.add_stat(w.body, "assign")
    return b.program


def sleeper(ms):
    b = ProgramBuilder()
    sid = b.add_stat(ENTRY, "sleep")
    b.const(b.program.stats[sid].value, ms)
    return b.program


@pytest.mark.parametrize("duration,want", [
    (None, 0.0), (0, 0.0), (250, 0.25), (-5, 0.0), (math.nan, 0.0), (math.inf, 0.0),
])
def test_pause_seconds(duration, want):
    st = RunningState("0", (), SpecialVariables(), duration)
    assert pause_seconds(st) == want


def test_step_until_done():
    p = Player(sleeper(10))
    first = p.step()
    second = p.step()
    assert (first.duration, second.duration) == (None, 10)
    assert p.step() is None
    assert p.done and p.state is None
    assert p.step() is None
    assert p.steps == 2


@pytest.mark.asyncio
async def test_play_paces_by_duration():
    clock = FakeClock()
    seen = []
    p = Player(sleeper(300), step_delay=0.1)
    n = await p.play(seen.append, sleep=clock.sleep)
    assert n == 2
    assert [s.duration for s in seen] == [None, 300]
    assert clock.waits == pytest.approx([0.1, 0.4])
    assert p.done


@pytest.mark.asyncio
async def test_interrupt_stops_between_snapshots():
    clock = FakeClock()
    seen = []
    p = Player(endless())
    clock.hook = lambda: len(seen) == 3 and p.interrupt()
    n = await p.play(seen.append, sleep=clock.sleep)
    assert n == 3
    assert not p.done
    assert not p.interrupted   # flag is reset once play returns


@pytest.mark.asyncio
async def test_resume_continues_same_run():
    clock = FakeClock()
    seen = []
    p = Player(example_program())
    clock.hook = lambda: len(seen) == 4 and p.interrupt()
    await p.play(seen.append, sleep=clock.sleep)
    clock.hook = None
    await p.play(seen.append, sleep=clock.sleep)
    assert p.done
    assert seen == list(run(example_program()))


@pytest.mark.asyncio
async def test_limit():
    clock = FakeClock()
    p = Player(endless())
    assert await p.play(lambda s: None, sleep=clock.sleep, limit=7) == 7
    assert p.steps == 7


@pytest.mark.asyncio
async def test_interrupt_before_play_only_skips_that_call():
    clock = FakeClock()
    p = Player(sleeper(1))
    p.interrupt()
    assert await p.play(lambda s: None, sleep=clock.sleep) == 0
    assert await p.play(lambda s: None, sleep=clock.sleep) == 2

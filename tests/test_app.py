import pytest

from graphicalang.app import (
    GraphicalangApp,
    apply_expr_input,
    expr_input_text,
    parse_expr_input,
)
from graphicalang.config import Settings
from graphicalang.program import (
    ENTRY,
    Assign,
    BinOp,
    Const,
    If,
    ProgramBuilder,
    UnknownNodeKind,
    Var,
    example_program,
)
from graphicalang.storage import ProgramStore


@pytest.mark.parametrize("text,want", [
    ("", None),
    ("   ", None),
    ("5", ("const", 5)),
    ("-2.5", ("const", -2.5)),
    ("const", ("const", 0)),
    ("const 7", ("const", 7)),
    ("var", ("var", "x")),
    ("var speed", ("var", "speed")),
    ("speed", ("var", "speed")),
    ("add", ("add", None)),
    ("+", ("add", None)),
    ("<=", ("lte", None)),
    ("not", ("not", None)),
])
def test_parse_expr_input(text, want):
    assert parse_expr_input(text) == want


@pytest.mark.parametrize("text", ["add 3", "9lives", "p@w", "x y"])
def test_parse_expr_input_rejects(text):
    with pytest.raises(UnknownNodeKind):
        parse_expr_input(text)


def test_parse_expr_input_bad_number():
    with pytest.raises(ValueError):
        parse_expr_input("const abc")


def test_apply_expr_input():
    b = ProgramBuilder()
    apply_expr_input(b, "e", "mul")
    e = b.program.exprs["e"]
    assert isinstance(e, BinOp) and e.op == "mul"
    apply_expr_input(b, e.lhs, "3")
    apply_expr_input(b, e.rhs, "var y")
    assert b.program.exprs[e.lhs] == Const(3)
    assert b.program.exprs[e.rhs] == Var("y")
    assert expr_input_text(b.program, e.lhs) == "const 3"
    assert expr_input_text(b.program, e.rhs) == "var y"
    assert expr_input_text(b.program, "e") == "mul"
    apply_expr_input(b, "e", "")
    assert "e" not in b.program.exprs
    assert expr_input_text(b.program, "e") == ""


@pytest.fixture
def store(tmp_path):
    return ProgramStore(tmp_path, "test")


@pytest.mark.asyncio
async def test_add_and_delete_statements(store):
    app = GraphicalangApp(store, Settings(storage_dir=store.directory))
    async with app.run_test() as pilot:
        await pilot.press("1")
        await pilot.press("2")
        entry = app.program.entry
        assert len(entry) == 2
        assert isinstance(app.program.stats[entry[0]], Assign)
        assert isinstance(app.program.stats[entry[1]], If)
        # cursor sits on the new "if"; delete it again
        await pilot.press("d")
        assert app.program.entry == entry[:1]
    assert store.load().entry == entry[:1]


@pytest.mark.asyncio
async def test_add_goes_into_body_under_cursor(store):
    app = GraphicalangApp(store, program=ProgramBuilder().program)
    async with app.run_test() as pilot:
        await pilot.press("3")            # while
        await pilot.press("down", "down")  # cond slot, "do" label
        await pilot.press("4")            # sleep inside the body
        wid = app.program.entry[0]
        body = app.program.stats[wid].body
        assert len(app.program.stat_lists[body]) == 1
        assert len(app.program.entry) == 1


@pytest.mark.asyncio
async def test_step_and_stop(store):
    app = GraphicalangApp(store, program=example_program())
    async with app.run_test() as pilot:
        await pilot.press("n")
        assert app.player is not None
        assert app.running_state.current_stat == app.program.entry[0]
        await pilot.press("n")
        assert app.running_state.current_stat == app.program.entry[1]
        await pilot.press("x")
        assert app.player is None
        assert app.running_state is None


@pytest.mark.asyncio
async def test_run_to_completion(store):
    b = ProgramBuilder()
    sid = b.add_stat(ENTRY, "assign")
    b.const(b.program.stats[sid].value, 7)
    app = GraphicalangApp(store, program=b.program)
    async with app.run_test() as pilot:
        await pilot.press("r")
        await app.workers.wait_for_complete()
        await pilot.pause()
        assert app.player is None
        assert "── PROGRAM END ──" in app.console_output


@pytest.mark.asyncio
async def test_broken_blob_is_reported(store):
    store.path.write_text("{oops", encoding="utf-8")
    app = GraphicalangApp(store)
    assert app.program.entry == ()
    assert app.console_output and app.console_output[0].startswith("⚠")


def test_parsed_numbers_are_doubles():
    kind, value = parse_expr_input("12")
    assert kind == "const" and type(value) is float
    assert type(parse_expr_input("const")[1]) is float


@pytest.mark.asyncio
async def test_pause_while_stepping_does_not_swallow_resume(store):
    app = GraphicalangApp(store, program=example_program())
    async with app.run_test() as pilot:
        await pilot.press("n")
        await pilot.press("p")
        assert not app.player.interrupted
        player = app.player
        await pilot.press("g")
        for _ in range(100):
            if player.steps > 1:
                break
            await pilot.pause(0.01)
        assert player.steps > 1
        await pilot.press("x")

"""Terminal block editor + stage built with Textual.

Keys:
    up/down j/k Move cursor
    1-4         Add assign / if / while / sleep to the list at the cursor
    e           Edit row (variable name, or expression)
    d           Delete statement, or clear expression
    r           Run program
    n           Step
    p           Pause
    g           Resume auto-run
    x           Stop
    q           Quit
"""

from __future__ import annotations

import logging
import re
from typing import Any

from textual import events, on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.strip import Strip
from textual.widget import Widget
from textual.widgets import Button, Footer, Input, Label, Static

from rich.segment import Segment
from rich.text import Text

from .config import Settings
from .engine import RunningState
from .player import Player
from .program import (
    BINARY_OPS,
    ENTRY,
    Assign,
    ExprId,
    Program,
    ProgramBuilder,
    StatListId,
    UnknownNodeKind,
)
from .render import (
    BG,
    CURSOR,
    EXEC,
    OP_SYMBOLS,
    ROW_STYLES,
    S,
    Row,
    block_rows,
    build_stage,
    describe_stat,
    fmt_num,
)
from .storage import ProgramStore

log = logging.getLogger(__name__)

STAT_LABELS = {"assign": "Assign", "if": "If", "while": "While", "sleep": "Sleep"}
SYMBOL_KINDS = {sym: kind for kind, sym in OP_SYMBOLS.items()}
_IDENT = re.compile(r"^[A-Za-z_]\w*$")


# ═══════════════════════════ EXPRESSION INPUT ═══════════════════════════

def parse_number(text: str) -> float:
    return float(text)


def parse_expr_input(text: str) -> tuple[str, Any] | None:
    """Turn editor input into ``(kind, argument)``; None means "clear".

    Accepted: ``5``, ``const 5``, ``var y``, ``y``, an operator name or
    symbol (``add``, ``+``, ``<=`` ...), ``not``.
    """
    words = text.split()
    if not words:
        return None
    head, rest = words[0], words[1:]
    kind = SYMBOL_KINDS.get(head, head)
    if kind == "const":
        return "const", parse_number(rest[0]) if rest else 0.0
    if kind == "var":
        return "var", rest[0] if rest else "x"
    if kind in BINARY_OPS or kind == "not":
        if rest:
            raise UnknownNodeKind("expression", text)
        return kind, None
    if not rest:
        try:
            return "const", parse_number(head)
        except ValueError:
            pass
        if _IDENT.match(head):
            return "var", head
    raise UnknownNodeKind("expression", text)


def apply_expr_input(builder: ProgramBuilder, expr_id: ExprId, text: str) -> None:
    parsed = parse_expr_input(text)
    if parsed is None:
        builder.set_expr(expr_id, None)
        return
    kind, arg = parsed
    if kind == "const":
        builder.const(expr_id, arg)
    elif kind == "var":
        builder.var(expr_id, arg)
    else:
        builder.fill_expr(expr_id, kind)


def expr_input_text(program: Program, expr_id: ExprId) -> str:
    """Current value of an expression slot, as the edit box shows it."""
    expr = program.exprs.get(expr_id)
    if expr is None:
        return ""
    if expr.type == "const":
        return f"const {fmt_num(expr.value)}"
    if expr.type == "var":
        return f"var {expr.name}"
    return expr.type


# ═══════════════════════════ EDIT SCREEN ═══════════════════════════

class EditScreen(ModalScreen):
    """Modal with a single text field."""

    CSS = """
    EditScreen { align: center middle; }
    #edit-box {
        width: 60;
        height: auto;
        border: solid #00d4a0;
        background: #0a1510;
        padding: 1 2;
    }
    #edit-box Label { color: #00d4a0; }
    #edit-box Input { margin: 0 0 1 0; }
    #edit-box Button { margin: 1 1 0 0; }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, hint: str, value: str):
        super().__init__()
        self.title_text = title
        self.hint = hint
        self.value = value

    def compose(self) -> ComposeResult:
        with Vertical(id="edit-box"):
            yield Label(f"✏️  EDIT — {self.title_text.upper()}")
            yield Label(self.hint)
            yield Input(value=self.value, id="inp-value")
            with Horizontal():
                yield Button("Cancel", id="btn-cancel")
                yield Button("💾 Save", id="btn-save", variant="primary")

    @on(Input.Submitted, "#inp-value")
    @on(Button.Pressed, "#btn-save")
    def do_save(self) -> None:
        self.dismiss(self.query_one("#inp-value", Input).value)

    @on(Button.Pressed, "#btn-cancel")
    def do_cancel(self) -> None:
        self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


# ═══════════════════════════ STAGE WIDGET ═══════════════════════════

class StageCanvas(Widget, can_focus=False):
    """Draws the sprite from the special variables of the current snapshot."""

    def __init__(self, settings: Settings, **kw: Any):
        super().__init__(**kw)
        self.settings = settings
        self._buf: list[list[tuple[str, S]]] = []

    @property
    def _app(self) -> "GraphicalangApp":
        return self.app  # type: ignore

    def _rebuild(self) -> None:
        s = self.settings
        w = min(self.size.width, s.stage_cols)
        h = min(self.size.height, s.stage_rows)
        if w <= 0 or h <= 0:
            self._buf = []
            return
        self._buf = build_stage(self._app.running_state, w, h, s.cell_width, s.cell_height)

    def render_line(self, y: int) -> Strip:
        if not self._buf:
            self._rebuild()
        width = max(1, self.size.width)
        if 0 <= y < len(self._buf):
            return Strip([Segment(ch, st) for ch, st in self._buf[y]], width)
        return Strip([Segment(" " * width, BG)], width)

    def refresh_stage(self) -> None:
        self._buf = []
        self.refresh()

    def on_resize(self, event: events.Resize) -> None:
        self.refresh_stage()


class ProgramPane(VerticalScroll, can_focus=False):
    pass


# ═══════════════════════════ MAIN APP ═══════════════════════════

class GraphicalangApp(App):
    """Block editor with a step-through runner and a sprite stage."""

    CSS = """
    Screen { background: #080e0b; }

    #toolbar {
        height: 3;
        background: #0a1510;
        border-bottom: solid #1a4a3a;
        padding: 0 1;
    }

    #main-area { height: 1fr; }

    #program-pane {
        width: 1fr;
        padding: 0 1;
    }

    #panel {
        width: 62;
        border-left: solid #1a4a3a;
        background: #050c0a;
    }

    #stage {
        height: 20;
        border-bottom: solid #1a4a3a;
    }

    #vars-sec {
        height: auto;
        max-height: 10;
        border-bottom: solid #1a4a3a;
        padding: 0 1;
    }

    #console-sec {
        height: 1fr;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("up", "cursor(-1)", "Up", show=False, priority=True),
        Binding("down", "cursor(1)", "Down", show=False, priority=True),
        Binding("k", "cursor(-1)", show=False),
        Binding("j", "cursor(1)", show=False),
        Binding("1", "add_stat('assign')", "Assign"),
        Binding("2", "add_stat('if')", "If"),
        Binding("3", "add_stat('while')", "While"),
        Binding("4", "add_stat('sleep')", "Sleep"),
        Binding("e", "edit_row", "Edit"),
        Binding("d", "delete_row", "Del"),
        Binding("delete", "delete_row", "Delete", show=False),
        Binding("r", "run_program", "▶Run"),
        Binding("n", "step_program", "Step"),
        Binding("p", "pause_program", "Pause"),
        Binding("g", "resume_program", "Go"),
        Binding("x", "stop_program", "Stop"),
        Binding("q", "quit", "Quit"),
    ]

    # ── state ──
    cursor_row: int = 0
    player: Player | None = None
    running_state: RunningState | None = None
    console_output: list[str]

    def __init__(
        self,
        store: ProgramStore,
        settings: Settings | None = None,
        program: Program | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings or Settings()
        self.store = store
        self.console_output = []
        if program is None:
            program, error = store.load_or_empty()
            if error:
                self.console_output.append(f"⚠ {error}")
        self.builder = ProgramBuilder(program)

    @property
    def program(self) -> Program:
        return self.builder.program

    def compose(self) -> ComposeResult:
        yield Static(id="toolbar")
        with Horizontal(id="main-area"):
            with ProgramPane(id="program-pane"):
                yield Static(id="program-text")
            with Vertical(id="panel"):
                yield StageCanvas(self.settings, id="stage")
                yield Static(id="vars-sec")
                yield Static(id="console-sec")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_all()

    # ═══ UI refresh ═══

    def rows(self) -> list[Row]:
        return block_rows(self.program)

    def current_row(self) -> Row:
        rows = self.rows()
        self.cursor_row = max(0, min(self.cursor_row, len(rows) - 1))
        return rows[self.cursor_row]

    def refresh_all(self) -> None:
        self._draw_toolbar()
        self._draw_program()
        self._draw_vars()
        self._draw_console()
        self.query_one("#stage", StageCanvas).refresh_stage()

    def _draw_toolbar(self) -> None:
        t = Text()
        t.append("  graphicalang ", S(color="#00ffc8", bold=True))
        t.append("BLOCK RUNNER  ", S(color="#1a4a3a"))
        for key, kind in zip("1234", STAT_LABELS):
            t.append(f" [{key}]{STAT_LABELS[kind]} ", S(color="#ffcc66"))
        t.append(" │ ", S(color="#1a4a3a"))
        p = self.player
        if p is None:
            t.append(" [r]▶ RUN [n]STEP ", S(color="#44ff88", bold=True))
        else:
            tag = "▶ AUTO" if p.playing else "⏸ READY"
            t.append(f" {tag} ", S(color="#ffcc00", bold=True))
            t.append(" [n]STEP [g]GO [p]PAUSE [x]STOP ", S(color="#44ddff"))
        if self.running_state is not None:
            t.append(" │ ", S(color="#1a4a3a"))
            t.append(describe_stat(self.program, self.running_state.current_stat),
                     S(color="#ffee66"))
        self.query_one("#toolbar", Static).update(t)

    def _draw_program(self) -> None:
        rows = self.rows()
        self.cursor_row = max(0, min(self.cursor_row, len(rows) - 1))
        exec_id = self.running_state.current_stat if self.running_state else None
        t = Text()
        for i, row in enumerate(rows):
            style = ROW_STYLES[row.kind]
            if row.kind == "stat" and row.stat_id == exec_id:
                style = EXEC
            if i == self.cursor_row:
                style = style + CURSOR
            mark = "▸ " if i == self.cursor_row else "  "
            t.append(f"{mark}{'  ' * row.depth}{row.text}\n", style)
        self.query_one("#program-text", Static).update(t)
        pane = self.query_one("#program-pane", ProgramPane)
        pane.scroll_to(y=max(0, self.cursor_row - 5), animate=False)

    def _draw_vars(self) -> None:
        t = Text()
        t.append("📦 VARIABLES\n", S(color="#1a6a4a", bold=True))
        st = self.running_state
        if st is None:
            t.append("  (not running)\n", S(color="#1a4a3a", italic=True))
        else:
            for k, v in st.variables:
                t.append(f"  {k}", S(color="#ffcc66"))
                t.append("=", S(color="#1a4a3a"))
                t.append(f"{fmt_num(v)} ", S(color="#44ff88"))
            t.append("\n")
            if st.duration is not None:
                t.append(f"  sleeping {fmt_num(st.duration)} ms\n", S(color="#44ddff"))
        self.query_one("#vars-sec", Static).update(t)

    def _draw_console(self) -> None:
        t = Text()
        t.append("🖥️  CONSOLE\n", S(color="#1a6a4a", bold=True))
        for line in self.console_output[-30:]:
            if line.startswith("⚠"):
                t.append(f"  {line}\n", S(color="#ff6666"))
            else:
                t.append(f"  {line}\n", S(color="#1a6a4a"))
        self.query_one("#console-sec", Static).update(t)

    def say(self, line: str) -> None:
        self.console_output.append(line)

    # ═══ editing ═══

    def _commit(self) -> None:
        try:
            self.store.save(self.program)
        except OSError as exc:
            log.warning("autosave failed: %s", exc)
            self.say(f"⚠ save failed: {exc}")

    def _target_list(self) -> StatListId:
        rows = self.rows()
        i = max(0, min(self.cursor_row, len(rows) - 1))
        row = rows[i]
        if row.list_id is not None:
            return row.list_id
        if row.kind == "label" and i + 1 < len(rows):
            nxt = rows[i + 1]
            if nxt.list_id is not None and nxt.depth == row.depth + 1:
                return nxt.list_id
        for prev in reversed(rows[:i]):
            if prev.kind == "stat" and prev.depth < row.depth and prev.list_id is not None:
                return prev.list_id
        return ENTRY

    def action_cursor(self, delta: int) -> None:
        self.cursor_row = max(0, min(self.cursor_row + delta, len(self.rows()) - 1))
        self._draw_program()

    def action_add_stat(self, kind: str) -> None:
        stat_id = self.builder.add_stat(self._target_list(), kind)
        self._commit()
        for i, row in enumerate(self.rows()):
            if row.kind == "stat" and row.stat_id == stat_id:
                self.cursor_row = i
                break
        self.refresh_all()

    def action_delete_row(self) -> None:
        row = self.current_row()
        if row.kind == "stat" and row.list_id is not None and row.index is not None:
            self.builder.remove_stat_list_item(row.list_id, row.index)
        elif row.expr_id is not None:
            self.builder.set_expr(row.expr_id, None)
        else:
            return
        self._commit()
        self.refresh_all()

    def action_edit_row(self) -> None:
        row = self.current_row()
        if row.expr_id is not None:
            expr_id = row.expr_id
            hint = "const 5 | var y | " + " ".join(BINARY_OPS) + " | not | empty clears"
            self.push_screen(
                EditScreen("expression", hint, expr_input_text(self.program, expr_id)),
                lambda value: self._on_edit_expr(expr_id, value),
            )
            return
        stat = self.program.stats.get(row.stat_id) if row.stat_id else None
        if row.kind == "stat" and isinstance(stat, Assign):
            stat_id = row.stat_id
            self.push_screen(
                EditScreen("assign", "Variable name:", stat.name),
                lambda value: self._on_edit_name(stat_id, value),
            )

    def _on_edit_expr(self, expr_id: ExprId, value: str | None) -> None:
        if value is None:
            return
        try:
            apply_expr_input(self.builder, expr_id, value)
        except ValueError as exc:
            self.say(f"⚠ {exc}")
        else:
            self._commit()
        self.refresh_all()

    def _on_edit_name(self, stat_id: str, value: str | None) -> None:
        stat = self.program.stats.get(stat_id)
        name = (value or "").strip()
        if not isinstance(stat, Assign) or not name:
            return
        self.builder.set_stat(stat_id, Assign(name, stat.value))
        self._commit()
        self.refresh_all()

    # ═══ running ═══

    def _new_player(self) -> Player:
        self.player = Player(self.program, step_delay=self.settings.step_delay)
        self.running_state = None
        self.say("── PROGRAM START ──")
        return self.player

    def _finish(self) -> None:
        self.player = None
        self.running_state = None
        self.say("── PROGRAM END ──")

    def _on_state(self, state: RunningState) -> None:
        self.running_state = state
        self.refresh_all()

    async def _auto(self, player: Player) -> None:
        await player.play(self._on_state)
        if self.player is player and player.done:
            self._finish()
        self.refresh_all()

    def _start_auto(self, player: Player) -> None:
        self.run_worker(self._auto(player), exclusive=True, group="run")

    def action_run_program(self) -> None:
        self.action_stop_program(quiet=True)
        self._start_auto(self._new_player())
        self.refresh_all()

    def action_step_program(self) -> None:
        p = self.player or self._new_player()
        if p.playing:
            return
        if p.step() is None:
            self._finish()
        else:
            self.running_state = p.state
        self.refresh_all()

    def action_pause_program(self) -> None:
        if self.player is not None and self.player.playing:
            self.player.interrupt()
        self.refresh_all()

    def action_resume_program(self) -> None:
        if self.player is not None and not self.player.playing:
            self._start_auto(self.player)
        self.refresh_all()

    def action_stop_program(self, quiet: bool = False) -> None:
        if self.player is not None:
            self.player.interrupt()
            self.workers.cancel_group(self, "run")
            if not quiet:
                self.say("── STOPPED ──")
        self.player = None
        self.running_state = None
        self.refresh_all()

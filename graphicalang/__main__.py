"""graphicalang — block programs with a step-through runner.

Usage:
    python3 -m graphicalang [edit]          open the block editor
    python3 -m graphicalang trace [--limit N] [--no-sleep] [--json]
    python3 -m graphicalang dump            print the stored program
    python3 -m graphicalang example         store the example program
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from .config import Settings
from .engine import RunningState
from .player import Player
from .program import ProgramFormatError, example_program
from .render import describe_stat, fmt_num
from .storage import ProgramStore, dumps

log = logging.getLogger("graphicalang")


def configure_logging(level: str, tui: bool) -> None:
    if tui:
        from textual.logging import TextualHandler
        handler: logging.Handler = TextualHandler()
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="graphicalang", description=__doc__.splitlines()[0])
    ap.add_argument("--home", type=Path, help="directory holding stored programs")
    ap.add_argument("--key", help="storage key of the program")
    ap.add_argument("--step-delay", type=float, help="extra seconds between steps")
    ap.add_argument("--log-level", help="DEBUG, INFO, WARNING ...")
    sub = ap.add_subparsers(dest="command")
    sub.add_parser("edit", help="open the block editor (default)")
    tr = sub.add_parser("trace", help="run headless and print every snapshot")
    tr.add_argument("--limit", type=int, default=None, help="stop after N snapshots")
    tr.add_argument("--no-sleep", action="store_true", help="ignore sleep durations")
    tr.add_argument("--json", action="store_true", help="print snapshots as JSON lines")
    sub.add_parser("dump", help="print the stored program as JSON")
    sub.add_parser("example", help="store the example program under the key")
    return ap


def settings_from_args(args: argparse.Namespace) -> Settings:
    s = Settings.from_env()
    if args.home is not None:
        s.storage_dir = args.home
    if args.key:
        s.storage_key = args.key
    if args.step_delay is not None:
        s.step_delay = max(0.0, args.step_delay)
    if args.log_level:
        s.log_level = args.log_level.upper()
    return s


# ═══════════════════════════ TRACE ═══════════════════════════

def format_state(program, state: RunningState) -> Text:
    t = Text()
    t.append(f"[{state.current_stat:>3}] ", style="bold #00d4a0")
    t.append(f"{describe_stat(program, state.current_stat):<28}", style="#00ffc8")
    for k, v in state.variables:
        t.append(f" {k}=", style="#ffcc66")
        t.append(fmt_num(v), style="#44ff88")
    if state.duration is not None:
        t.append(f"  sleep {fmt_num(state.duration)}ms", style="#44ddff")
    return t


async def trace(store: ProgramStore, settings: Settings, limit: int | None,
                no_sleep: bool, as_json: bool, console: Console) -> int:
    program = store.load()
    player = Player(program, step_delay=settings.step_delay)

    def show(state: RunningState) -> None:
        if as_json:
            console.out(json.dumps(state.to_dict()), highlight=False)
        else:
            console.print(format_state(program, state))

    async def no_wait(_: float) -> None:
        return None

    count = await player.play(show, sleep=no_wait if no_sleep else asyncio.sleep, limit=limit)
    if not player.done:
        log.warning("stopped after %d snapshots (program still running)", count)
    return count


# ═══════════════════════════ ENTRY ═══════════════════════════

def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "edit"
    try:
        settings = settings_from_args(args)
        configure_logging(settings.log_level, tui=command == "edit")
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    store = ProgramStore(settings.storage_dir, settings.storage_key)
    console = Console()

    try:
        if command == "edit":
            from .app import GraphicalangApp
            GraphicalangApp(store, settings).run()
        elif command == "trace":
            asyncio.run(trace(store, settings, args.limit, args.no_sleep, args.json, console))
        elif command == "dump":
            console.print_json(dumps(store.load()))
        elif command == "example":
            store.save(example_program())
            console.print(f"example program stored at {store.path}")
    except ProgramFormatError as exc:
        print(f"Error: {store.path}: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

import json

import pytest

from graphicalang.__main__ import build_parser, main, settings_from_args
from graphicalang.program import example_program
from graphicalang.storage import ProgramStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("GRAPHICALANG_HOME", "GRAPHICALANG_KEY",
                "GRAPHICALANG_STEP_DELAY", "GRAPHICALANG_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


def test_settings_from_args_override_env(monkeypatch, tmp_path):
    monkeypatch.setenv("GRAPHICALANG_KEY", "from-env")
    monkeypatch.setenv("GRAPHICALANG_STEP_DELAY", "0.5")
    args = build_parser().parse_args(["--home", str(tmp_path), "--step-delay", "0.2", "trace"])
    s = settings_from_args(args)
    assert s.storage_key == "from-env"
    assert s.step_delay == 0.2
    assert s.storage_dir == tmp_path


def test_bad_step_delay_env(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("GRAPHICALANG_STEP_DELAY", "soon")
    assert main(["--home", str(tmp_path), "dump"]) == 2
    assert "GRAPHICALANG_STEP_DELAY" in capsys.readouterr().err


def test_example_then_dump(tmp_path, capsys):
    assert main(["--home", str(tmp_path), "--key", "demo", "example"]) == 0
    assert ProgramStore(tmp_path, "demo").load() == example_program()
    capsys.readouterr()
    assert main(["--home", str(tmp_path), "--key", "demo", "dump"]) == 0
    blob = json.loads(capsys.readouterr().out)
    assert blob["statLists"]["entry"] == list(example_program().entry)


def test_trace_json_lines(tmp_path, capsys):
    main(["--home", str(tmp_path), "example"])
    capsys.readouterr()
    assert main(["--home", str(tmp_path), "trace", "--no-sleep", "--json", "--limit", "5"]) == 0
    lines = [json.loads(l) for l in capsys.readouterr().out.splitlines() if l.strip()]
    assert len(lines) == 5
    assert lines[0]["currentStat"] == example_program().entry[0]
    assert lines[0]["specialVariables"] == {"x": 0, "y": 0, "angle": 0}


def test_trace_broken_blob(tmp_path, capsys):
    ProgramStore(tmp_path, "graphicalang-program-v1").path.write_text("[]", encoding="utf-8")
    assert main(["--home", str(tmp_path), "trace", "--no-sleep"]) == 1
    assert "expected an object" in capsys.readouterr().err

"""Runtime settings, read from the environment and overridden by CLI flags."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_KEY = "graphicalang-program-v1"


def _default_home() -> Path:
    return Path(os.environ.get("GRAPHICALANG_HOME", Path.home() / ".graphicalang"))


@dataclass
class Settings:
    storage_dir: Path = field(default_factory=_default_home)
    storage_key: str = DEFAULT_KEY
    step_delay: float = 0.0     # seconds added to every pause
    stage_width: int = 600      # px
    stage_height: int = 400
    cell_width: int = 10        # px per terminal cell
    cell_height: int = 20
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        s = cls()
        s.storage_key = os.environ.get("GRAPHICALANG_KEY", s.storage_key)
        delay = os.environ.get("GRAPHICALANG_STEP_DELAY")
        if delay:
            try:
                s.step_delay = max(0.0, float(delay))
            except ValueError:
                raise ValueError(f"GRAPHICALANG_STEP_DELAY: not a number: {delay!r}") from None
        s.log_level = os.environ.get("GRAPHICALANG_LOG_LEVEL", s.log_level).upper()
        return s

    @property
    def stage_cols(self) -> int:
        return max(1, self.stage_width // self.cell_width)

    @property
    def stage_rows(self) -> int:
        return max(1, self.stage_height // self.cell_height)

"""Interpreter configuration and environment-variable defaults."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, Literal

ARITHMETIC_MODES: Final[tuple[str, ...]] = ("standard", "legacy")
PROGRAM_CACHE_MAX: Final[int] = max(1, int(os.environ.get("FLOATSCRIPT_PROGRAM_CACHE_MAX", "256")))
# Most recent diagnostics kept on an environment; older ones are dropped.
DIAGNOSTICS_KEEP_MAX: Final[int] = max(0, int(os.environ.get("FLOATSCRIPT_DIAGNOSTICS_KEEP_MAX", "1024")))
# Largest array subscript accepted on write; bounds the dense vector built by fetch.
MAX_ARRAY_INDEX: Final[int] = max(0, int(os.environ.get("FLOATSCRIPT_MAX_ARRAY_INDEX", str(2**20))))


def _optional_int(raw: str | None, *, name: str) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _optional_float(raw: str | None, *, name: str) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from exc


@dataclass(frozen=True)
class InterpreterConfig:
    """Execution policy for one interpreter run.

    - `arithmetic`: `standard` evaluates with conventional precedence and
      left associativity; `legacy` reproduces the five-pass splice reduction.
    - `max_loop_iterations`: total `while` iterations allowed, `None` for no limit.
    - `time_budget`: wall-clock seconds allowed for loops, `None` for no limit.
    """

    arithmetic: Literal["standard", "legacy"] = "standard"
    max_loop_iterations: int | None = None
    time_budget: float | None = None

    def __post_init__(self) -> None:
        if self.arithmetic not in ARITHMETIC_MODES:
            raise ValueError(f"arithmetic must be one of {', '.join(ARITHMETIC_MODES)}, got {self.arithmetic!r}")
        if self.max_loop_iterations is not None and self.max_loop_iterations < 0:
            raise ValueError("max_loop_iterations must be non-negative")
        if self.time_budget is not None and self.time_budget < 0:
            raise ValueError("time_budget must be non-negative")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "InterpreterConfig":
        source = os.environ if environ is None else environ
        return cls(
            arithmetic=source.get("FLOATSCRIPT_ARITHMETIC", "standard").strip() or "standard",
            max_loop_iterations=_optional_int(source.get("FLOATSCRIPT_MAX_LOOP_ITERATIONS"), name="FLOATSCRIPT_MAX_LOOP_ITERATIONS"),
            time_budget=_optional_float(source.get("FLOATSCRIPT_TIME_BUDGET"), name="FLOATSCRIPT_TIME_BUDGET"),
        )

"""Run a floatscript file and print the final variable store as JSON."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from floatscript import FloatScriptError, Interpreter, InterpreterConfig


def build_config(args: argparse.Namespace) -> InterpreterConfig:
    defaults = InterpreterConfig.from_env()
    return InterpreterConfig(
        arithmetic="legacy" if args.legacy else defaults.arithmetic,
        max_loop_iterations=defaults.max_loop_iterations if args.max_loop_iterations is None else args.max_loop_iterations,
        time_budget=defaults.time_budget if args.time_budget is None else args.time_budget,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", help="script file to execute")
    parser.add_argument(
        "--legacy",
        action="store_true",
        help="reduce arithmetic with the legacy five-pass rules",
    )
    parser.add_argument(
        "--max-loop-iterations",
        type=int,
        default=None,
        help="abort after this many while-loop iterations",
    )
    parser.add_argument(
        "--time-budget",
        type=float,
        default=None,
        help="abort loops after this many wall-clock seconds",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="logging level for store diagnostics (DEBUG, INFO, WARNING, ...)",
    )
    parser.add_argument(
        "--json-out",
        default=None,
        help="also write the final store to this JSON file",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    source = Path(args.path).read_text(encoding="utf-8")
    try:
        interpreter = Interpreter(source, config=build_config(args))
    except FloatScriptError as err:
        print(f"error: {err}")
        return 1

    payload = interpreter.environment.snapshot()
    report = json.dumps(payload, indent=2, sort_keys=True)
    print(report)

    if args.json_out is not None:
        out_path = Path(args.json_out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(report + "\n", encoding="utf-8")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

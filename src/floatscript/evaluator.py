"""Evaluator for floatscript programs on top of JAX float32 scalars."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from functools import lru_cache
from typing import Final

import jax.numpy as jnp
from jax import lax

from .ast import Assign, Call, Chain, Comparison, Condition, ConditionChain, Expr, IfChain, Index, Infix, Name, NoOp, Number, Prefix, Program, Statement, Test, While
from .config import PROGRAM_CACHE_MAX, InterpreterConfig
from .environment import Environment
from .errors import ExecutionBudgetExceeded, FloatScriptError, FloatScriptParseError, MalformedNumberError, classify_runtime_exception
from .parser import ParseError, parse, parse_condition, parse_program
from .values import FLOAT_DTYPE, format_scalar, truncate_index

logger = logging.getLogger(__name__)

_UNARY_FUNCTIONS: Final[dict[str, Callable[[jnp.ndarray], jnp.ndarray]]] = {
    "Sin": jnp.sin,
    "Asin": jnp.arcsin,
    "Sign": jnp.sign,
    "Sqrt": jnp.sqrt,
    "Log": jnp.log,
}

_BINARY_OPS: Final[dict[str, Callable[[jnp.ndarray, jnp.ndarray], jnp.ndarray]]] = {
    "^": lax.pow,
    "*": lax.mul,
    "/": lax.div,
    "+": lax.add,
    "-": lax.sub,
}

_COMPARISONS: Final[dict[str, Callable[[jnp.ndarray, jnp.ndarray], jnp.ndarray]]] = {
    "<": lax.lt,
    ">": lax.gt,
    "==": lax.eq,
    "!=": lax.ne,
}

_LOGICAL_OPS: Final[dict[str, Callable[[bool, bool], bool]]] = {
    "&&": lambda w, x: w and x,
    "||": lambda w, x: w or x,
}

# Fixed pass order of the legacy reducer: one full scan per operator.
_LEGACY_ARITHMETIC_PASSES: Final[tuple[str, ...]] = ("^", "*", "/", "+", "-")
_LEGACY_LOGICAL_PASSES: Final[tuple[str, ...]] = ("&&", "||")


@lru_cache(maxsize=PROGRAM_CACHE_MAX)
def _parse_program_cached(source: str, arithmetic: str) -> Program:
    return parse_program(source, arithmetic=arithmetic)  # type: ignore[arg-type]


def _number(value: float) -> jnp.ndarray:
    return jnp.asarray(value, dtype=FLOAT_DTYPE)


def _apply_binary(op: str, left, right) -> jnp.ndarray:
    if left is None or right is None:
        raise MalformedNumberError(f"Operator {op!r} is missing an operand")
    return _BINARY_OPS[op](left, right)


def _splice_reduce(items: list, passes: tuple[str, ...], apply: Callable[[str, object, object], object]) -> list:
    """Collapse `left op right` triples in place, one left-to-right scan per operator.

    The result replaces the left operand and the scan resumes one slot past
    the collapsed operator, so an operator directly following a collapse is
    not revisited within the same pass.
    """
    for op in passes:
        i = 0
        while i < len(items):
            if isinstance(items[i], str) and items[i] == op:
                items[i] = apply(op, items[i - 1], items[i + 1])
                del items[i - 1]
                del items[i]
            i += 1
    return items


def _chain_items(chain: Chain, env: Environment) -> list:
    items: list = []
    for item in chain.items:
        if item is None or isinstance(item, str):
            items.append(item)
            continue
        value = _eval_expr(item, env)
        if isinstance(item, Chain) and bool(value < 0):
            # A bracketed result re-enters the chain as text, so its sign reads as an operator.
            items.extend((None, "-", lax.neg(value)))
            continue
        items.append(value)
    return items


def _eval_chain(chain: Chain, env: Environment) -> jnp.ndarray:
    items = _chain_items(chain, env)
    reduced = _splice_reduce(items, _LEGACY_ARITHMETIC_PASSES, _apply_binary)
    if len(reduced) > 1:
        leftover = " ".join(item if isinstance(item, str) else format_scalar(item) for item in reduced[1:] if item is not None)
        logger.warning("Discarding unreduced tokens after legacy reduction: %s", leftover)
    result = reduced[0]
    if result is None:
        raise MalformedNumberError("Expression has no leading operand")
    return result


def _eval_expr(expr: Expr, env: Environment) -> jnp.ndarray:
    if isinstance(expr, Number):
        return _number(expr.value)

    if isinstance(expr, Name):
        return env.get(expr.value)

    if isinstance(expr, Index):
        index = truncate_index(_eval_expr(expr.index, env))
        return env.get_array_element(expr.name, index)

    if isinstance(expr, Call):
        arg = _eval_expr(expr.arg, env)
        if isinstance(expr.arg, Chain) and bool(arg < 0):
            raise MalformedNumberError(f"Function {expr.func} cannot read the negative operand {format_scalar(arg)}")
        return _UNARY_FUNCTIONS[expr.func](arg)

    if isinstance(expr, Prefix):
        return lax.neg(_eval_expr(expr.right, env))

    if isinstance(expr, Infix):
        left = _eval_expr(expr.left, env)
        right = _eval_expr(expr.right, env)
        return _BINARY_OPS[expr.op](left, right)

    if isinstance(expr, Chain):
        return _eval_chain(expr, env)

    raise TypeError(f"Unsupported expression node: {type(expr)!r}")


def _eval_comparison(comparison: Comparison, env: Environment) -> bool:
    left = _eval_expr(comparison.left, env)
    right = _eval_expr(comparison.right, env)
    return bool(_COMPARISONS[comparison.op](left, right))


def _eval_test(test: Test, env: Environment) -> bool:
    # Every comparison runs before any connective is applied; there is no short-circuit.
    results = [_eval_comparison(comparison, env) for comparison in test.comparisons]

    if isinstance(test, ConditionChain):
        items: list = [results[0]]
        for connective, result in zip(test.connectives, results[1:]):
            items.extend((connective, result))
        reduced = _splice_reduce(items, _LEGACY_LOGICAL_PASSES, lambda op, w, x: _LOGICAL_OPS[op](w, x))
        return bool(reduced[0])

    if isinstance(test, Condition):
        # `&&` binds tighter than `||`: split into `||`-separated runs of conjunctions.
        runs: list[list[bool]] = [[results[0]]]
        for connective, result in zip(test.connectives, results[1:]):
            if connective == "||":
                runs.append([result])
            else:
                runs[-1].append(result)
        return any(all(run) for run in runs)

    raise TypeError(f"Unsupported condition node: {type(test)!r}")


def evaluate_expression(source: str, env: Environment | None = None, *, arithmetic: str = "standard") -> jnp.ndarray:
    """Evaluate a single expression against `env` (a fresh store when omitted)."""
    runtime_env = Environment() if env is None else env
    try:
        expr = parse(source, arithmetic=arithmetic)  # type: ignore[arg-type]
    except ParseError as err:
        raise FloatScriptParseError.from_parse_error(err) from err
    return _eval_expr(expr, runtime_env)


def evaluate_condition(source: str, env: Environment | None = None, *, arithmetic: str = "standard") -> bool:
    """Evaluate a bare condition such as `x>1&&y!=2`."""
    runtime_env = Environment() if env is None else env
    try:
        test = parse_condition(source, arithmetic=arithmetic)  # type: ignore[arg-type]
    except ParseError as err:
        raise FloatScriptParseError.from_parse_error(err) from err
    return _eval_test(test, runtime_env)


class _Executor:
    """Walks a parsed block tree, mutating one environment."""

    def __init__(self, env: Environment, config: InterpreterConfig) -> None:
        self.env = env
        self.config = config
        # One entry per active if-chain: has a branch of that chain already fired.
        self._branch_taken: list[bool] = []
        self._loop_iterations = 0
        self._deadline = None if config.time_budget is None else time.monotonic() + config.time_budget

    def run(self, program: Program) -> None:
        self._run_body(program.statements)

    def _run_body(self, body: tuple[Statement, ...]) -> None:
        for stmt in body:
            self._run_statement(stmt)

    def _run_statement(self, stmt: Statement) -> None:
        if isinstance(stmt, Assign):
            self._assign(stmt)
            return

        if isinstance(stmt, IfChain):
            self._run_if_chain(stmt)
            return

        if isinstance(stmt, While):
            self._run_while(stmt)
            return

        if isinstance(stmt, NoOp):
            logger.debug("Line %d has no effect: %s", stmt.line, stmt.text)
            return

        raise TypeError(f"Unsupported statement node: {type(stmt)!r}")

    def _assign(self, stmt: Assign) -> None:
        value = _eval_expr(stmt.value, self.env)
        target = stmt.target
        if isinstance(target, Index):
            index = truncate_index(_eval_expr(target.index, self.env))
            self.env.set_array_element(target.name, index, value)
            return
        self.env.set(target.value, value)

    def _run_if_chain(self, chain: IfChain) -> None:
        self._branch_taken.append(False)
        try:
            for branch in chain.branches:
                if self._branch_taken[-1]:
                    logger.debug("Skipping %s at line %d; an earlier branch ran", branch.keyword, branch.line)
                    continue
                if _eval_test(branch.condition, self.env):
                    self._branch_taken[-1] = True
                    self._run_body(branch.body)
            if chain.orelse is not None and not self._branch_taken[-1]:
                self._run_body(chain.orelse)
        finally:
            self._branch_taken.pop()

    def _run_while(self, loop: While) -> None:
        while _eval_test(loop.condition, self.env):
            self._tick(loop)
            self._run_body(loop.body)

    def _tick(self, loop: While) -> None:
        self._loop_iterations += 1
        limit = self.config.max_loop_iterations
        if limit is not None and self._loop_iterations > limit:
            raise ExecutionBudgetExceeded(f"Loop at line {loop.line} exceeded the budget of {limit} iterations")
        if self._deadline is not None and time.monotonic() > self._deadline:
            raise ExecutionBudgetExceeded(f"Loop at line {loop.line} exceeded the time budget of {self.config.time_budget} seconds")


def execute(source: str, env: Environment | None = None, *, config: InterpreterConfig | None = None) -> Environment:
    """Parse and run a whole program, returning the environment it mutated."""
    run_config = InterpreterConfig.from_env() if config is None else config
    runtime_env = Environment() if env is None else env

    try:
        program = _parse_program_cached(source, run_config.arithmetic)
    except ParseError as err:
        raise FloatScriptParseError.from_parse_error(err) from err

    logger.debug("Running %d statements over %d logical lines", len(program.statements), len(program.lines))
    try:
        _Executor(runtime_env, run_config).run(program)
    except FloatScriptError:
        raise
    except Exception as err:
        raise classify_runtime_exception(err) from err
    return runtime_env

"""Host-facing interpreter object."""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

import jax.numpy as jnp

from .config import InterpreterConfig
from .environment import Diagnostic, Environment
from .evaluator import execute
from .values import to_float


class Interpreter:
    """Parse and run a floatscript program against its own variable store.

    Construction executes the whole program before returning; there is no
    stepping. Pass a pre-filled `env` to hand arrays or scalars to the script
    before it runs, and a `config` with `max_loop_iterations` or `time_budget`
    when the script is untrusted, since a `while` whose condition never turns
    false otherwise runs forever.

    Raises `FloatScriptParseError` (or its `UnbalancedBlockError` subclass)
    for structural problems and `FloatScriptRuntimeError` subclasses for
    failures during execution. Naming errors and undefined references are not
    raised; they show up in `diagnostics`.
    """

    def __init__(self, source: str, *, env: Environment | None = None, config: InterpreterConfig | None = None) -> None:
        self.source = source
        self.config = InterpreterConfig.from_env() if config is None else config
        self.environment = Environment() if env is None else env
        execute(source, self.environment, config=self.config)

    @property
    def diagnostics(self) -> deque[Diagnostic]:
        return self.environment.diagnostics

    def set_variable(self, name: str, value: float) -> None:
        self.environment.set(name, value)

    def get_variable(self, name: str) -> float:
        return to_float(self.environment.get(name))

    def initialise_array(self, name: str, values: Sequence[float] | jnp.ndarray) -> None:
        self.environment.load_array(name, values)

    def update_array(self, name: str, index: int, value: float) -> None:
        self.environment.set_array_element(name, index, value)

    def get_array_item(self, name: str, index: int) -> float:
        return to_float(self.environment.get_array_element(name, index))

    def fetch_array(self, name: str) -> jnp.ndarray:
        return self.environment.fetch_array(name)

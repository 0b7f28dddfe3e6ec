"""Variable store shared between a running script and its host."""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Final

import jax.numpy as jnp

from .config import DIAGNOSTICS_KEEP_MAX, MAX_ARRAY_INDEX
from .lexer import ARRAY_DELIMITER, RESERVED_KEYWORDS
from .values import FLOAT_DTYPE, as_scalar, as_vector, format_scalar, to_float, zero

logger = logging.getLogger(__name__)

BUILTIN_CONSTANTS: Final[dict[str, float]] = {
    "pi": 3.14159,
    "e": 2.71828,
}

_MISSING: Final = object()

_SCALAR_NAME_RE: Final = re.compile(r"^[0-9_]*[A-Za-z][A-Za-z0-9_]*$")
_ARRAY_KEY_RE: Final = re.compile(r"^(?!\$)[0-9_$]*[A-Za-z][A-Za-z0-9_$]*$")


class DiagnosticKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    NAMING_ERROR = "naming_error"
    UNDEFINED_REFERENCE = "undefined_reference"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    name: str
    value: float | None
    message: str


_LOG_LEVELS: Final[dict[DiagnosticKind, int]] = {
    DiagnosticKind.CREATED: logging.INFO,
    DiagnosticKind.UPDATED: logging.INFO,
    DiagnosticKind.NAMING_ERROR: logging.WARNING,
    DiagnosticKind.UNDEFINED_REFERENCE: logging.WARNING,
}


def reserved_keyword_in(name: str) -> str | None:
    for keyword in RESERVED_KEYWORDS:
        if keyword in name:
            return keyword
    return None


def is_valid_name(name: str, *, array_element: bool = False) -> bool:
    pattern = _ARRAY_KEY_RE if array_element else _SCALAR_NAME_RE
    return pattern.match(name) is not None and reserved_keyword_in(name) is None


def array_key(name: str, index: int) -> str:
    return f"{name}{ARRAY_DELIMITER}{index}"


def split_array_key(key: str) -> tuple[str, int] | None:
    """Split `A$3` into `("A", 3)`; `None` when `key` is not a well-formed element key."""
    base, sep, index = key.partition(ARRAY_DELIMITER)
    if not sep or not base or not index.isdigit():
        return None
    return base, int(index)


class Environment(Mapping[str, jnp.ndarray]):
    """Name to float32 store with first-class sparse arrays.

    Scalars and arrays live in separate tables. Array elements are also
    reachable through the flat `name$index` key, which is how they appear when
    the store is iterated or snapshotted. Every write and every failed lookup
    produces a `Diagnostic`, logged, passed to `on_diagnostic` and kept in
    `diagnostics`. Only the newest `keep_diagnostics` records are retained
    (`None` keeps all, `0` keeps none). Array subscripts above
    `max_array_index` are rejected on write.
    """

    def __init__(
        self,
        data: Mapping[str, object] | None = None,
        *,
        builtins: bool = True,
        on_diagnostic: Callable[[Diagnostic], None] | None = None,
        keep_diagnostics: int | None = DIAGNOSTICS_KEEP_MAX,
        max_array_index: int = MAX_ARRAY_INDEX,
    ) -> None:
        self._scalars: dict[str, jnp.ndarray] = {}
        self._arrays: dict[str, dict[int, jnp.ndarray]] = {}
        self.diagnostics: deque[Diagnostic] = deque(maxlen=keep_diagnostics)
        self.max_array_index = max_array_index
        self._on_diagnostic = on_diagnostic

        if builtins:
            for name, value in BUILTIN_CONSTANTS.items():
                self.set(name, value)
        if data is not None:
            for name, value in data.items():
                self.set(name, value, is_array_element=ARRAY_DELIMITER in name)

    def _report(self, kind: DiagnosticKind, name: str, value: jnp.ndarray | None, message: str) -> None:
        diagnostic = Diagnostic(kind=kind, name=name, value=None if value is None else to_float(value), message=message)
        self.diagnostics.append(diagnostic)
        logger.log(_LOG_LEVELS[kind], message)
        if self._on_diagnostic is not None:
            self._on_diagnostic(diagnostic)

    def _naming_error(self, name: str, *, array_element: bool, reason: str | None = None) -> None:
        if reason is None:
            keyword = reserved_keyword_in(name)
            if keyword is not None:
                reason = f"contains reserved keyword {keyword!r}"
            elif array_element:
                reason = "is not a valid array element name"
            else:
                reason = "is not a valid variable name"
        self._report(DiagnosticKind.NAMING_ERROR, name, None, f"Name {name!r} {reason}; assignment ignored")

    def set(self, name: str, value: object, is_array_element: bool = False) -> bool:
        """Insert or overwrite `name`. Returns False when the name is rejected."""
        scalar = as_scalar(value, where=f"name {name!r}")
        if not is_valid_name(name, array_element=is_array_element):
            self._naming_error(name, array_element=is_array_element)
            return False

        if is_array_element:
            parts = split_array_key(name)
            if parts is None:
                self._naming_error(name, array_element=True)
                return False
            base, index = parts
            if index > self.max_array_index:
                self._naming_error(name, array_element=True, reason=f"has an index above the limit of {self.max_array_index}")
                return False
            table = self._arrays.setdefault(base, {})
            existed = index in table
            table[index] = scalar
        else:
            existed = name in self._scalars
            self._scalars[name] = scalar

        if existed:
            self._report(DiagnosticKind.UPDATED, name, scalar, f"Updated variable {name} with value {format_scalar(scalar)}")
        else:
            self._report(DiagnosticKind.CREATED, name, scalar, f"Added new variable {name} with value {format_scalar(scalar)}")
        return True

    def _lookup(self, name: str) -> jnp.ndarray | None:
        parts = split_array_key(name)
        if parts is not None:
            base, index = parts
            return self._arrays.get(base, {}).get(index)
        return self._scalars.get(name)

    def get(self, name: str, default: object = _MISSING) -> jnp.ndarray:  # type: ignore[override]
        """Return the value of `name`.

        With an explicit `default` this is plain `Mapping.get`. Without one an
        undefined name yields float32 zero plus an undefined-reference
        diagnostic, which is what script reads use.
        """
        value = self._lookup(name)
        if value is None:
            if default is not _MISSING:
                return default  # type: ignore[return-value]
            self._report(DiagnosticKind.UNDEFINED_REFERENCE, name, None, f"Variable {name} is not defined; using 0")
            return zero()
        return value

    def set_array_element(self, name: str, index: int, value: object) -> bool:
        return self.set(array_key(name, index), value, is_array_element=True)

    def get_array_element(self, name: str, index: int) -> jnp.ndarray:
        return self.get(array_key(name, index))

    def load_array(self, name: str, values: object) -> None:
        """Bulk-load `values` as elements `name$0 .. name$n-1`."""
        vector = as_vector(values, where=f"array {name!r}")
        for index in range(vector.shape[0]):
            self.set_array_element(name, index, vector[index])

    def fetch_array(self, name: str) -> jnp.ndarray:
        """Return array `name` as a dense float32 vector over indices `0..max`.

        Gaps read as zero. An unknown array yields an empty vector and an
        undefined-reference diagnostic.
        """
        table = self._arrays.get(name)
        if not table:
            self._report(DiagnosticKind.UNDEFINED_REFERENCE, name, None, f"Array {name} is not defined; using []")
            return jnp.zeros((0,), dtype=FLOAT_DTYPE)
        indices = sorted(table)
        dense = jnp.zeros((indices[-1] + 1,), dtype=FLOAT_DTYPE)
        return dense.at[jnp.asarray(indices)].set(jnp.stack([table[i] for i in indices]))

    def array_names(self) -> list[str]:
        return sorted(self._arrays)

    def snapshot(self) -> dict[str, float]:
        return {name: to_float(value) for name, value in self.items()}

    def __getitem__(self, key: str) -> jnp.ndarray:
        value = self._lookup(key)
        if value is None:
            raise KeyError(key)
        return value

    def __iter__(self) -> Iterator[str]:
        yield from self._scalars
        for base, table in self._arrays.items():
            for index in sorted(table):
                yield array_key(base, index)

    def __len__(self) -> int:
        return len(self._scalars) + sum(len(table) for table in self._arrays.values())

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._lookup(key) is not None


"""Structured error types for parser/runtime separation."""

from __future__ import annotations

from dataclasses import dataclass

from .parser import BlockMatchError, ParseError


class FloatScriptError(Exception):
    """Base class for structured floatscript errors."""


@dataclass(eq=False)
class FloatScriptParseError(FloatScriptError):
    """Wraps parser failures with explicit parse-stage typing."""

    message: str
    start: int
    end: int
    line: int | None = None
    expected: tuple[str, ...] = ()
    found: str | None = None

    @classmethod
    def from_parse_error(cls, err: ParseError) -> "FloatScriptParseError":
        target = UnbalancedBlockError if isinstance(err, BlockMatchError) else cls
        return target(
            message=err.message,
            start=err.start,
            end=err.end,
            line=err.line,
            expected=err.expected,
            found=err.found,
        )

    def __str__(self) -> str:
        where = f"span [{self.start}, {self.end})"
        if self.line is not None:
            where = f"line {self.line}, {where}"
        expected = ""
        if self.expected:
            expected = f"; expected {', '.join(self.expected)}"
        found = ""
        if self.found is not None:
            found = f"; found {self.found}"
        return f"{self.message} at {where}{expected}{found}"


class UnbalancedBlockError(FloatScriptParseError):
    """An `if`/`elif`/`else`/`while` block without a matching close marker, or a stray close."""


class FloatScriptRuntimeError(FloatScriptError):
    """Generic runtime failure after successful parse."""


class MalformedNumberError(FloatScriptRuntimeError):
    """An operand that should be a number is missing or unreadable."""


class ExecutionBudgetExceeded(FloatScriptRuntimeError):
    """A loop ran past the configured iteration or wall-clock budget."""


def classify_runtime_exception(err: Exception) -> FloatScriptRuntimeError:
    """Best-effort runtime error classification for structured APIs."""
    message = str(err)
    lowered = message.lower()

    number_markers = (
        "could not convert",
        "invalid literal",
        "cannot convert float",
        "nan",
        "infinity",
    )
    if isinstance(err, (ValueError, OverflowError)) and any(marker in lowered for marker in number_markers):
        return MalformedNumberError(message)

    return FloatScriptRuntimeError(message)

"""floatscript public API."""

import logging

from .config import InterpreterConfig
from .environment import Diagnostic, DiagnosticKind, Environment
from .errors import (
    ExecutionBudgetExceeded,
    FloatScriptError,
    FloatScriptParseError,
    FloatScriptRuntimeError,
    MalformedNumberError,
    UnbalancedBlockError,
)
from .evaluator import evaluate_condition, evaluate_expression, execute
from .interpreter import Interpreter
from .lexer import normalize_source, tokenize
from .parser import ParseError, find_block_end, parse, parse_condition, parse_program

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Interpreter",
    "InterpreterConfig",
    "Environment",
    "Diagnostic",
    "DiagnosticKind",
    "execute",
    "evaluate_expression",
    "evaluate_condition",
    "normalize_source",
    "tokenize",
    "parse",
    "parse_condition",
    "parse_program",
    "find_block_end",
    "ParseError",
    "FloatScriptError",
    "FloatScriptParseError",
    "FloatScriptRuntimeError",
    "MalformedNumberError",
    "UnbalancedBlockError",
    "ExecutionBudgetExceeded",
]

"""AST nodes for floatscript expressions, conditions and block-structured programs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Name:
    value: str


@dataclass(frozen=True)
class Index:
    name: str
    index: "Expr"


@dataclass(frozen=True)
class Call:
    func: str
    arg: "Expr"


@dataclass(frozen=True)
class Prefix:
    op: str
    right: "Expr"


@dataclass(frozen=True)
class Infix:
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Chain:
    """Flat operand/operator sequence reduced with the legacy five-pass rules.

    Operands sit at even positions and operator symbols at odd positions. A
    `None` operand marks a missing number (for example a leading `-`).
    """

    items: tuple["Expr | str | None", ...]


@dataclass(frozen=True)
class Comparison:
    op: str
    left: "Expr"
    right: "Expr"


@dataclass(frozen=True)
class Condition:
    comparisons: tuple[Comparison, ...]
    connectives: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConditionChain:
    """Condition whose `&&`/`||` reduction follows the legacy splice passes."""

    comparisons: tuple[Comparison, ...]
    connectives: tuple[str, ...] = ()


@dataclass(frozen=True)
class Assign:
    target: "Name | Index"
    value: "Expr"
    line: int


@dataclass(frozen=True)
class NoOp:
    text: str
    line: int


@dataclass(frozen=True)
class Branch:
    keyword: str
    condition: "Test"
    body: tuple["Statement", ...]
    line: int


@dataclass(frozen=True)
class IfChain:
    branches: tuple[Branch, ...]
    orelse: tuple["Statement", ...] | None = None


@dataclass(frozen=True)
class While:
    condition: "Test"
    body: tuple["Statement", ...]
    line: int


@dataclass(frozen=True)
class Program:
    statements: tuple["Statement", ...]
    lines: tuple[str, ...] = ()


Expr = Union[Number, Name, Index, Call, Prefix, Infix, Chain]
Test = Union[Condition, ConditionChain]
Statement = Union[Assign, NoOp, IfChain, While]

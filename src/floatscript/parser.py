"""Parser for floatscript expressions, conditions and block-structured programs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from .ast import Assign, Branch, Call, Chain, Comparison, Condition, ConditionChain, Expr, IfChain, Index, Infix, Name, NoOp, Number, Prefix, Program, Statement, Test, While
from .lexer import BLOCK_CLOSE, BLOCK_OPEN, Token, normalize_source, tokenize

ArithmeticMode = Literal["standard", "legacy"]

# (left, right) binding powers. `^` is right-associative, the rest left-associative.
_BINDING_POWER = {
    "+": (10, 11),
    "-": (10, 11),
    "*": (20, 21),
    "/": (20, 21),
    "^": (41, 40),
}
_PREFIX_BINDING_POWER = 30

_PRIMARY_START = {"NUMBER", "NAME", "FUNC", "LPAREN"}

_CONTROL_RE = re.compile(r"^(elif|if|while)(?=\()")
_CONTROL_PREFIX_RE = re.compile(r"^(?:elif|else|if|while)")
_ASSIGN_RE = re.compile(r"(?<![=!<>])=(?!=)")


class ParseError(SyntaxError):
    def __init__(
        self,
        message: str,
        start: int,
        end: int,
        expected: tuple[str, ...] = (),
        found: str | None = None,
        line: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.start = start
        self.end = end
        self.expected = expected
        self.found = found
        self.line = line

    def __str__(self) -> str:
        where = f"span [{self.start}, {self.end})"
        if self.line is not None:
            where = f"line {self.line}, {where}"
        expected_text = ""
        if self.expected:
            expected_text = f"; expected {', '.join(self.expected)}"
        found_text = ""
        if self.found is not None:
            found_text = f"; found {self.found}"
        return f"{self.message} at {where}{expected_text}{found_text}"


class BlockMatchError(ParseError):
    """A block marker has no matching partner."""


def _tokenize_at(text: str, *, line: int | None, offset: int = 0) -> list[Token]:
    try:
        tokens = tokenize(text)
    except SyntaxError as exc:
        raise ParseError(str(exc), offset, offset + len(text), line=line) from exc
    if offset:
        tokens = [Token(tok.kind, tok.text, tok.pos + offset, tok.end + offset) for tok in tokens]
    return tokens


@dataclass
class _ExpressionParser:
    tokens: list[Token]
    arithmetic: ArithmeticMode = "standard"
    line: int | None = None
    index: int = 0

    def parse_expression_only(self) -> Expr:
        expr = self._parse_expression()
        self._expect("EOF")
        return expr

    def parse_condition_only(self) -> Test:
        comparisons = [self._parse_comparison()]
        connectives: list[str] = []
        while self._peek().kind == "LOGIC":
            connectives.append(self._advance().text)
            comparisons.append(self._parse_comparison())
        self._expect("EOF")
        if self.arithmetic == "legacy":
            return ConditionChain(comparisons=tuple(comparisons), connectives=tuple(connectives))
        return Condition(comparisons=tuple(comparisons), connectives=tuple(connectives))

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def _expect(self, kind: str) -> Token:
        tok = self._peek()
        if tok.kind != kind:
            self._error(tok, expected=(kind,))
        return self._advance()

    def _error(self, tok: Token | None = None, *, message: str | None = None, expected: tuple[str, ...] = ()) -> None:
        token = tok if tok is not None else self._peek()
        detail = message if message is not None else "Unexpected token"
        if token.kind == "EOF":
            found = "EOF"
        else:
            found = f"{token.kind}({token.text})"
        raise ParseError(detail, token.pos, token.end, expected=tuple(dict.fromkeys(expected)), found=found, line=self.line)

    def _parse_expression(self) -> Expr:
        if self.arithmetic == "legacy":
            return self._parse_chain()
        return self._parse_binary(0)

    def _parse_comparison(self) -> Comparison:
        left = self._parse_expression()
        tok = self._peek()
        if tok.kind != "CMP":
            self._error(tok, message="Condition is missing a comparison operator", expected=("CMP",))
        self._advance()
        right = self._parse_expression()
        return Comparison(op=tok.text, left=left, right=right)

    def _parse_binary(self, min_bp: int) -> Expr:
        left = self._parse_unary()
        while True:
            tok = self._peek()
            if tok.kind != "OP":
                break
            left_bp, right_bp = _BINDING_POWER[tok.text]
            if left_bp < min_bp:
                break
            self._advance()
            right = self._parse_binary(right_bp)
            left = Infix(op=tok.text, left=left, right=right)
        return left

    def _parse_unary(self) -> Expr:
        tok = self._peek()
        if tok.kind == "OP" and tok.text == "-":
            self._advance()
            return Prefix(op="-", right=self._parse_binary(_PREFIX_BINDING_POWER))
        return self._parse_primary()

    def _parse_chain(self) -> Chain:
        items: list[Expr | str | None] = []
        expect_operand = True
        while True:
            tok = self._peek()
            if tok.kind == "OP":
                if expect_operand:
                    items.append(None)
                items.append(self._advance().text)
                expect_operand = True
                continue
            if expect_operand and tok.kind in _PRIMARY_START:
                items.append(self._parse_primary())
                expect_operand = False
                continue
            break
        if expect_operand:
            items.append(None)
        return Chain(items=tuple(items))

    def _parse_primary(self) -> Expr:
        tok = self._peek()

        if tok.kind == "NUMBER":
            self._advance()
            return Number(value=float(tok.text))

        if tok.kind == "NAME":
            self._advance()
            if self._peek().kind == "LBRACK":
                self._advance()
                index = self._parse_expression()
                self._expect("RBRACK")
                return Index(name=tok.text, index=index)
            return Name(value=tok.text)

        if tok.kind == "FUNC":
            self._advance()
            arg_tok = self._peek()
            if arg_tok.kind not in {"NUMBER", "LPAREN"}:
                self._error(arg_tok, message=f"Function {tok.text} needs a numeral or bracketed argument", expected=("NUMBER", "LPAREN"))
            return Call(func=tok.text, arg=self._parse_primary())

        if tok.kind == "LPAREN":
            self._advance()
            inner = self._parse_expression()
            self._expect("RPAREN")
            return inner

        self._error(tok, expected=tuple(sorted(_PRIMARY_START)))
        raise AssertionError("unreachable")


def find_block_end(lines: list[str] | tuple[str, ...], start: int) -> int:
    """Return the index of the line closing the block that opens at or after `start`.

    Open and close markers are counted line by line; the close is the first
    line where the close count catches up with a positive open count.
    """
    opened = 0
    closed = 0
    for index in range(start, len(lines)):
        opened += lines[index].count(BLOCK_OPEN)
        closed += lines[index].count(BLOCK_CLOSE)
        if opened > 0 and closed >= opened:
            return index
    raise BlockMatchError(
        "Block is never closed",
        0,
        len(lines[start]) if start < len(lines) else 0,
        expected=(BLOCK_CLOSE,),
        found="EOF",
        line=start,
    )


def extract_condition(line: str) -> tuple[str, int]:
    """Return the text inside the first balanced bracket group and its offset."""
    open_at = line.find("(")
    if open_at < 0:
        raise ParseError("Control statement is missing its condition", 0, len(line), expected=("LPAREN",))
    depth = 0
    for index in range(open_at, len(line)):
        ch = line[index]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return line[open_at + 1 : index], open_at + 1
    raise ParseError("Condition bracket is never closed", open_at, len(line), expected=("RPAREN",), found="EOF")


def parse(source: str, *, arithmetic: ArithmeticMode = "standard") -> Expr:
    tokens = _tokenize_at(source, line=None)
    return _ExpressionParser(tokens=tokens, arithmetic=arithmetic).parse_expression_only()


def parse_condition(source: str, *, arithmetic: ArithmeticMode = "standard") -> Test:
    tokens = _tokenize_at(source, line=None)
    return _ExpressionParser(tokens=tokens, arithmetic=arithmetic).parse_condition_only()


@dataclass
class _ProgramParser:
    lines: list[str]
    arithmetic: ArithmeticMode = "standard"

    def parse_body(self, start: int, stop: int) -> tuple[Statement, ...]:
        statements: list[Statement] = []
        index = start
        while index < stop:
            line = self.lines[index]

            if line == BLOCK_CLOSE:
                raise BlockMatchError("Unexpected block close", 0, 1, found=BLOCK_CLOSE, line=index)

            if line == BLOCK_OPEN:
                body, index = self._parse_block(index)
                statements.extend(body)
                continue

            match = _CONTROL_RE.match(line)
            if match is not None:
                keyword = match.group(1)
                if keyword == "elif":
                    raise ParseError("elif without a preceding if", 0, len(keyword), found=line, line=index)
                if keyword == "while":
                    condition = self._parse_test(index)
                    body, next_index = self._parse_block(index + 1)
                    statements.append(While(condition=condition, body=body, line=index))
                    index = next_index
                    continue
                chain, index = self._parse_if_chain(index)
                statements.append(chain)
                continue

            if line == "else":
                raise ParseError("else without a preceding if", 0, len(line), found=line, line=index)

            assign = _ASSIGN_RE.search(line)
            if assign is None and _CONTROL_PREFIX_RE.match(line):
                raise ParseError("Malformed control statement", 0, len(line), expected=("if(", "elif(", "else", "while("), found=line, line=index)
            if assign is not None:
                statements.append(self._parse_assignment(line, assign.start(), index))
            else:
                statements.append(NoOp(text=line, line=index))
            index += 1
        return tuple(statements)

    def _parse_block(self, index: int) -> tuple[tuple[Statement, ...], int]:
        if index >= len(self.lines) or self.lines[index] != BLOCK_OPEN:
            found = "EOF" if index >= len(self.lines) else self.lines[index]
            raise ParseError("Expected a block", 0, 0, expected=(BLOCK_OPEN,), found=found, line=index)
        end = find_block_end(self.lines, index)
        return self.parse_body(index + 1, end), end + 1

    def _parse_if_chain(self, index: int) -> tuple[IfChain, int]:
        branches: list[Branch] = []
        orelse: tuple[Statement, ...] | None = None
        keyword = "if"
        while True:
            condition = self._parse_test(index)
            body, next_index = self._parse_block(index + 1)
            branches.append(Branch(keyword=keyword, condition=condition, body=body, line=index))
            index = next_index
            if index >= len(self.lines):
                break
            line = self.lines[index]
            if line.startswith("elif("):
                keyword = "elif"
                continue
            if line == "else":
                orelse, index = self._parse_block(index + 1)
            break
        return IfChain(branches=tuple(branches), orelse=orelse), index

    def _parse_test(self, index: int) -> Test:
        line = self.lines[index]
        try:
            text, offset = extract_condition(line)
        except ParseError as exc:
            exc.line = index
            raise
        trailing = line[offset + len(text) + 1 :]
        if trailing:
            raise ParseError("Unexpected text after condition", offset + len(text) + 1, len(line), expected=("EOF",), found=trailing, line=index)
        tokens = _tokenize_at(text, line=index, offset=offset)
        return _ExpressionParser(tokens=tokens, arithmetic=self.arithmetic, line=index).parse_condition_only()

    def _parse_assignment(self, line: str, split_at: int, index: int) -> Assign:
        target_text = line[:split_at]
        value_text = line[split_at + 1 :]
        value_tokens = _tokenize_at(value_text, line=index, offset=split_at + 1)
        value = _ExpressionParser(tokens=value_tokens, arithmetic=self.arithmetic, line=index).parse_expression_only()
        return Assign(target=self._parse_target(target_text, index), value=value, line=index)

    def _parse_target(self, text: str, index: int) -> Name | Index:
        bracket = text.find("[")
        if bracket < 0 or not text.endswith("]"):
            # Name validation is left to the store.
            return Name(value=text)
        tokens = _tokenize_at(text[bracket + 1 : -1], line=index, offset=bracket + 1)
        subscript = _ExpressionParser(tokens=tokens, arithmetic=self.arithmetic, line=index).parse_expression_only()
        return Index(name=text[:bracket], index=subscript)


def parse_program(source: str, *, arithmetic: ArithmeticMode = "standard") -> Program:
    lines = normalize_source(source)
    parser = _ProgramParser(lines=lines, arithmetic=arithmetic)
    return Program(statements=parser.parse_body(0, len(lines)), lines=tuple(lines))

"""Source normalization and tokenization for the floatscript language."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int
    end: int


BLOCK_OPEN = "{"
BLOCK_CLOSE = "}"
STATEMENT_SEPARATOR = ";"
ARRAY_DELIMITER = "$"

CONTROL_KEYWORDS = ("if", "elif", "else", "while")
FUNCTION_KEYWORDS = ("Sin", "Asin", "Sign", "Sqrt", "Log")
RESERVED_KEYWORDS = CONTROL_KEYWORDS + FUNCTION_KEYWORDS

_SINGLE_TOKENS = {
    "(": "LPAREN",
    ")": "RPAREN",
    "[": "LBRACK",
    "]": "RBRACK",
    "+": "OP",
    "-": "OP",
    "*": "OP",
    "/": "OP",
    "^": "OP",
    "<": "CMP",
    ">": "CMP",
}

_DOUBLE_TOKENS = {
    "==": "CMP",
    "!=": "CMP",
    "&&": "LOGIC",
    "||": "LOGIC",
}

_INSIGNIFICANT = {" ", "\t"}
_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n|" + re.escape(STATEMENT_SEPARATOR))
_NUMBER_RE = re.compile(r"^(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)$")
_WORD_RE = re.compile(r"^(?!\$)[0-9_$]*[A-Za-z][A-Za-z0-9_$]*$")


def normalize_source(source: str) -> list[str]:
    """Split raw source into trimmed logical lines.

    Spaces and tabs are dropped everywhere, block markers are forced onto
    lines of their own and statements are split on line breaks and `;`.
    Empty lines are not kept.
    """
    text = "".join(ch for ch in source if ch not in _INSIGNIFICANT)
    text = text.replace(BLOCK_OPEN, f"\n{BLOCK_OPEN}\n")
    text = text.replace(BLOCK_CLOSE, f"\n{BLOCK_CLOSE}\n")
    lines = (line.strip() for line in _LINE_SPLIT_RE.split(text))
    return [line for line in lines if line]


def is_numeral(text: str) -> bool:
    return _NUMBER_RE.match(text) is not None


def _is_word_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch in {"_", ".", ARRAY_DELIMITER})


def _scan_word(source: str, start: int) -> int:
    i = start
    while i < len(source) and _is_word_char(source[i]):
        i += 1
    return i


def _function_prefix(word: str) -> str | None:
    for keyword in FUNCTION_KEYWORDS:
        if word.startswith(keyword):
            return keyword
    return None


def _word_tokens(word: str, start: int) -> list[Token]:
    end = start + len(word)
    if is_numeral(word):
        return [Token("NUMBER", word, start, end)]

    keyword = _function_prefix(word)
    if keyword is not None:
        func = Token("FUNC", keyword, start, start + len(keyword))
        operand = word[len(keyword) :]
        if not operand:
            return [func]
        if is_numeral(operand):
            return [func, Token("NUMBER", operand, func.end, end)]
        raise SyntaxError(f"Malformed operand {operand!r} for function {keyword} at index {func.end}")

    if _WORD_RE.match(word):
        return [Token("NAME", word, start, end)]
    raise SyntaxError(f"Invalid word {word!r} at index {start}")


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    i = 0

    while i < len(source):
        ch = source[i]

        if ch in _INSIGNIFICANT:
            i += 1
            continue

        pair = source[i : i + 2]
        if pair in _DOUBLE_TOKENS:
            tokens.append(Token(_DOUBLE_TOKENS[pair], pair, i, i + 2))
            i += 2
            continue

        if ch in _SINGLE_TOKENS:
            tokens.append(Token(_SINGLE_TOKENS[ch], ch, i, i + 1))
            i += 1
            continue

        if ch == "=":
            tokens.append(Token("ASSIGN", ch, i, i + 1))
            i += 1
            continue

        if _is_word_char(ch):
            end = _scan_word(source, i)
            tokens.extend(_word_tokens(source[i:end], i))
            i = end
            continue

        raise SyntaxError(f"Unexpected character {ch!r} at index {i}")

    tokens.append(Token("EOF", "", len(source), len(source)))
    return tokens

"""Tokenizer for breach template sources."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from .errors import TemplateCompileError

LEFT_DELIM = "{{"
RIGHT_DELIM = "}}"
LEFT_COMMENT = "/*"
RIGHT_COMMENT = "*/"
SPACE = " \t\r\n"

KEYWORDS = {
    "if", "else", "end", "range", "with", "define", "template", "block",
    "break", "continue", "true", "false", "nil",
}

_NUMBER = re.compile(r"[+-]?(?:0[xX][0-9a-fA-F_]+|0[bB][01_]+|0[oO][0-7_]+|(?:\d[\d_]*)?\.?\d[\d_]*(?:[eE][+-]?\d+)?)")
_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_ESCAPES = {
    "n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'",
    "a": "\a", "b": "\b", "f": "\f", "v": "\v", "0": "\0",
}


class TokenKind(str, Enum):
    TEXT = "text"
    LEFT = "{{"
    RIGHT = "}}"
    FIELD = "field"
    DOT = "."
    VARIABLE = "variable"
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    STRING = "string"
    NUMBER = "number"
    PIPE = "|"
    LPAREN = "("
    RPAREN = ")"
    DECLARE = ":="
    ASSIGN = "="
    COMMA = ","
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    line: int
    # True when the token directly follows the previous one with no space
    # between them; field chains such as ``$x.Name`` rely on it.
    adjacent: bool = False


class Lexer:
    """Split a template source into text and action tokens."""

    def __init__(self, source: str, name: str = "breach") -> None:
        self.source = source
        self.name = name
        self.pos = 0
        self.line = 1
        self.tokens: List[Token] = []
        self._trim_next_text = False

    def tokenize(self) -> List[Token]:
        while self.pos < len(self.source):
            start = self.source.find(LEFT_DELIM, self.pos)
            if start < 0:
                self._emit_text(self.source[self.pos:])
                self.pos = len(self.source)
                break
            trim_left = self._trim_marker_at(start)
            self._emit_text(self.source[self.pos:start], trim_right=trim_left)
            self.pos = start + (3 if trim_left else 2)
            self._lex_action()
        self.tokens.append(Token(TokenKind.EOF, "", self.line))
        return self.tokens

    def error(self, message: str) -> TemplateCompileError:
        return TemplateCompileError(f"{self.name}:{self.line}: {message}")

    # ------------------------------------------------------------------
    # Text handling
    # ------------------------------------------------------------------
    def _trim_marker_at(self, start: int) -> bool:
        marker = start + len(LEFT_DELIM)
        return (
            self.source.startswith("-", marker)
            and marker + 1 < len(self.source)
            and self.source[marker + 1] in SPACE
        )

    def _emit_text(self, text: str, trim_right: bool = False) -> None:
        raw = text
        line = self.line
        if self._trim_next_text:
            text = text.lstrip(SPACE)
            line += raw[:len(raw) - len(text)].count("\n")
            self._trim_next_text = False
        if trim_right:
            text = text.rstrip(SPACE)
        if text:
            self.tokens.append(Token(TokenKind.TEXT, text, line))
        self.line += raw.count("\n")

    def _count_lines(self, start: int, end: int) -> None:
        self.line += self.source.count("\n", start, end)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def _lex_action(self) -> None:
        stripped = self.pos
        while stripped < len(self.source) and self.source[stripped] in SPACE:
            stripped += 1
        if self.source.startswith(LEFT_COMMENT, stripped):
            self._lex_comment(stripped)
            return

        self.tokens.append(Token(TokenKind.LEFT, LEFT_DELIM, self.line))
        previous_end = -1
        source = self.source
        while True:
            if self.pos >= len(source):
                raise self.error("unclosed action")
            char = source[self.pos]
            if char in SPACE:
                if source.startswith("-}}", self.pos + 1):
                    self._count_lines(self.pos, self.pos + 1)
                    self.pos += 4
                    self._trim_next_text = True
                    self.tokens.append(Token(TokenKind.RIGHT, RIGHT_DELIM, self.line))
                    return
                if char == "\n":
                    self.line += 1
                self.pos += 1
                continue
            if source.startswith(RIGHT_DELIM, self.pos):
                self.pos += 2
                self.tokens.append(Token(TokenKind.RIGHT, RIGHT_DELIM, self.line))
                return
            adjacent = previous_end == self.pos
            self._lex_token(char, adjacent)
            previous_end = self.pos

    def _lex_comment(self, start: int) -> None:
        end = self.source.find(RIGHT_COMMENT, start + 2)
        if end < 0:
            raise self.error("unclosed comment")
        after = end + 2
        while after < len(self.source) and self.source[after] in SPACE:
            after += 1
        trim_right = self.source.startswith("-}}", after) and after > end + 2
        if not trim_right and not self.source.startswith(RIGHT_DELIM, after):
            raise self.error("comment ends before closing delimiter")
        self._count_lines(self.pos, after)
        self.pos = after + (3 if trim_right else 2)
        if trim_right:
            self._trim_next_text = True

    def _lex_token(self, char: str, adjacent: bool) -> None:
        source = self.source
        if char == '"':
            self._append(TokenKind.STRING, self._lex_quoted(), adjacent)
        elif char == "`":
            end = source.find("`", self.pos + 1)
            if end < 0:
                raise self.error("unterminated raw quoted string")
            raw = source[self.pos + 1:end]
            self._count_lines(self.pos, end)
            self.pos = end + 1
            self._append(TokenKind.STRING, raw, adjacent)
        elif char == "$":
            match = _IDENT.match(source, self.pos + 1)
            name = "$" + (match.group(0) if match else "")
            self.pos += len(name)
            self._append(TokenKind.VARIABLE, name, adjacent)
        elif char == ".":
            match = _IDENT.match(source, self.pos + 1)
            if match:
                self.pos = match.end()
                self._append(TokenKind.FIELD, match.group(0), adjacent)
            elif self.pos + 1 < len(source) and source[self.pos + 1].isdigit():
                self._lex_number(adjacent)
            else:
                self.pos += 1
                self._append(TokenKind.DOT, ".", adjacent)
        elif char.isdigit() or (char in "+-" and self._starts_number()):
            self._lex_number(adjacent)
        elif char == "|":
            self.pos += 1
            self._append(TokenKind.PIPE, "|", adjacent)
        elif char == "(":
            self.pos += 1
            self._append(TokenKind.LPAREN, "(", adjacent)
        elif char == ")":
            self.pos += 1
            self._append(TokenKind.RPAREN, ")", adjacent)
        elif char == ",":
            self.pos += 1
            self._append(TokenKind.COMMA, ",", adjacent)
        elif source.startswith(":=", self.pos):
            self.pos += 2
            self._append(TokenKind.DECLARE, ":=", adjacent)
        elif char == "=":
            self.pos += 1
            self._append(TokenKind.ASSIGN, "=", adjacent)
        elif _IDENT.match(source, self.pos):
            match = _IDENT.match(source, self.pos)
            word = match.group(0)
            self.pos = match.end()
            kind = TokenKind.KEYWORD if word in KEYWORDS else TokenKind.IDENTIFIER
            self._append(kind, word, adjacent)
        elif char == "'":
            self._lex_char(adjacent)
        else:
            raise self.error(f"unexpected {char!r} in command")

    def _append(self, kind: TokenKind, value: str, adjacent: bool) -> None:
        self.tokens.append(Token(kind, value, self.line, adjacent))

    def _starts_number(self) -> bool:
        following = self.source[self.pos + 1:self.pos + 3]
        return bool(following) and (following[0].isdigit() or (following[0] == "." and following[1:2].isdigit()))

    def _lex_number(self, adjacent: bool) -> None:
        match = _NUMBER.match(self.source, self.pos)
        if not match or not match.group(0):
            raise self.error("bad number syntax")
        end = match.end()
        if end < len(self.source) and (self.source[end].isalnum() or self.source[end] == "."):
            raise self.error(f"bad number syntax: {self.source[self.pos:end + 1]!r}")
        self.pos = end
        self._append(TokenKind.NUMBER, match.group(0), adjacent)

    def _lex_quoted(self) -> str:
        out: List[str] = []
        index = self.pos + 1
        source = self.source
        while True:
            if index >= len(source) or source[index] == "\n":
                raise self.error("unterminated quoted string")
            char = source[index]
            if char == '"':
                break
            if char == "\\":
                decoded, index = self._decode_escape(index)
                out.append(decoded)
                continue
            out.append(char)
            index += 1
        self.pos = index + 1
        return "".join(out)

    def _lex_char(self, adjacent: bool) -> None:
        source = self.source
        if self.pos + 1 < len(source) and source[self.pos + 1] == "\\":
            decoded, index = self._decode_escape(self.pos + 1)
        elif self.pos + 1 < len(source):
            decoded, index = source[self.pos + 1], self.pos + 2
        else:
            raise self.error("unterminated character constant")
        if index >= len(source) or source[index] != "'":
            raise self.error("unterminated character constant")
        self.pos = index + 1
        self._append(TokenKind.NUMBER, str(ord(decoded)), adjacent)

    def _decode_escape(self, index: int) -> Tuple[str, int]:
        source = self.source
        if index + 1 >= len(source):
            raise self.error("unterminated escape sequence")
        code = source[index + 1]
        if code in _ESCAPES:
            return _ESCAPES[code], index + 2
        sizes = {"x": 2, "u": 4, "U": 8}
        if code in sizes:
            digits = source[index + 2:index + 2 + sizes[code]]
            if len(digits) != sizes[code] or not re.fullmatch(r"[0-9a-fA-F]+", digits):
                raise self.error(f"invalid escape sequence \\{code}{digits}")
            return chr(int(digits, 16)), index + 2 + sizes[code]
        raise self.error(f"unknown escape sequence \\{code}")


def tokenize(source: str, name: str = "breach") -> List[Token]:
    return Lexer(source, name).tokenize()


"""Parse breach template sources into an immutable node tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, List, Optional, Set, Tuple, Union

from .errors import TemplateCompileError
from .lexer import Token, TokenKind, tokenize

MAX_NESTING_DEPTH = 100


# ----------------------------------------------------------------------
# Nodes
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class DotNode:
    line: int


@dataclass(frozen=True)
class FieldNode:
    names: Tuple[str, ...]
    line: int


@dataclass(frozen=True)
class VariableNode:
    name: str
    names: Tuple[str, ...]
    line: int


@dataclass(frozen=True)
class IdentifierNode:
    name: str
    line: int


@dataclass(frozen=True)
class LiteralNode:
    value: Union[str, int, float, bool, None]
    line: int


@dataclass(frozen=True)
class ChainNode:
    node: "PipeNode"
    names: Tuple[str, ...]
    line: int


@dataclass(frozen=True)
class CommandNode:
    args: Tuple["Operand", ...]
    line: int


@dataclass(frozen=True)
class PipeNode:
    decl: Tuple[str, ...]
    is_assign: bool
    commands: Tuple[CommandNode, ...]
    line: int


Operand = Union[DotNode, FieldNode, VariableNode, IdentifierNode, LiteralNode, ChainNode, PipeNode]


@dataclass(frozen=True)
class ListNode:
    nodes: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class ActionNode:
    pipe: PipeNode
    line: int


@dataclass(frozen=True)
class IfNode:
    pipe: PipeNode
    body: ListNode
    else_body: Optional[ListNode]
    line: int


@dataclass(frozen=True)
class WithNode:
    pipe: PipeNode
    body: ListNode
    else_body: Optional[ListNode]
    line: int


@dataclass(frozen=True)
class RangeNode:
    pipe: PipeNode
    body: ListNode
    else_body: Optional[ListNode]
    line: int


@dataclass(frozen=True)
class TemplateNode:
    name: Operand
    pipe: Optional[PipeNode]
    line: int


@dataclass(frozen=True)
class BreakNode:
    line: int


@dataclass(frozen=True)
class ContinueNode:
    line: int


Node = Union[TextNode, ActionNode, IfNode, WithNode, RangeNode, TemplateNode, BreakNode, ContinueNode]


@dataclass(frozen=True)
class Tree:
    """A compiled template: the root list plus its named definitions."""

    root: ListNode
    defines: Dict[str, ListNode] = field(default_factory=dict)


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------
class Parser:
    """Recursive-descent parser over the lexer's token stream."""

    def __init__(self, source: str, functions: AbstractSet[str], name: str = "breach") -> None:
        self.name = name
        self.functions = functions
        self.tokens = tokenize(source, name)
        self.index = 0
        self.defines: Dict[str, ListNode] = {}
        self.vars: List[str] = ["$"]
        self.range_depth = 0
        self.nesting = 0

    def parse(self) -> Tree:
        root, stop = self._parse_list(set())
        if stop != "eof":
            raise self._error(f"unexpected {{{{{stop}}}}}")
        return Tree(root=root, defines=dict(self.defines))

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------
    def _peek(self, offset: int = 0) -> Token:
        position = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[position]

    def _next(self) -> Token:
        token = self.tokens[self.index]
        if token.kind is not TokenKind.EOF:
            self.index += 1
        return token

    def _expect(self, kind: TokenKind, context: str) -> Token:
        token = self._next()
        if token.kind is not kind:
            raise self._error(f"unexpected {self._describe(token)} in {context}", token)
        return token

    def _error(self, message: str, token: Optional[Token] = None) -> TemplateCompileError:
        line = (token or self._peek()).line
        return TemplateCompileError(f"{self.name}:{line}: {message}")

    def _enter(self, token: Token) -> None:
        self.nesting += 1
        if self.nesting > MAX_NESTING_DEPTH:
            raise self._error(f"exceeded maximum nesting depth ({MAX_NESTING_DEPTH})", token)

    def _leave(self) -> None:
        self.nesting -= 1

    @staticmethod
    def _describe(token: Token) -> str:
        if token.kind is TokenKind.EOF:
            return "EOF"
        if token.kind is TokenKind.RIGHT:
            return "}}"
        return f"{token.kind.value} {token.value!r}" if token.kind not in (TokenKind.PIPE, TokenKind.RPAREN) else repr(token.value)

    # ------------------------------------------------------------------
    # Lists and actions
    # ------------------------------------------------------------------
    def _parse_list(self, stops: Set[str]) -> Tuple[ListNode, str]:
        nodes: List[Node] = []
        while True:
            token = self._peek()
            if token.kind is TokenKind.EOF:
                if stops:
                    raise self._error("unexpected EOF", token)
                return ListNode(tuple(nodes)), "eof"
            if token.kind is TokenKind.TEXT:
                self._next()
                nodes.append(TextNode(token.value))
                continue
            self._expect(TokenKind.LEFT, "template")
            keyword = self._peek()
            if keyword.kind is TokenKind.KEYWORD and keyword.value in ("end", "else"):
                if keyword.value not in stops:
                    raise self._error(f"unexpected {{{{{keyword.value}}}}}", keyword)
                self._next()
                return ListNode(tuple(nodes)), keyword.value
            node = self._parse_action()
            if node is not None:
                nodes.append(node)

    def _parse_action(self) -> Optional[Node]:
        token = self._peek()
        if token.kind is TokenKind.KEYWORD:
            handler = {
                "if": self._parse_if,
                "with": self._parse_with,
                "range": self._parse_range,
                "template": self._parse_template,
                "define": self._parse_define,
                "block": self._parse_block,
                "break": self._parse_break,
                "continue": self._parse_continue,
            }.get(token.value)
            if handler is not None:
                self._next()
                return handler(token)
        pipe = self._parse_pipeline("command", TokenKind.RIGHT)
        return ActionNode(pipe, token.line)

    def _parse_control(self, context: str, allow_else_chain: bool) -> Tuple[PipeNode, ListNode, Optional[ListNode]]:
        self._enter(self._peek())
        saved_vars = len(self.vars)
        pipe = self._parse_pipeline(context, TokenKind.RIGHT)
        if context == "range":
            self.range_depth += 1
        body, stop = self._parse_list({"end", "else"})
        if context == "range":
            self.range_depth -= 1
        else_body: Optional[ListNode] = None
        if stop == "else":
            chained = self._peek()
            if allow_else_chain and chained.kind is TokenKind.KEYWORD and chained.value == context:
                self._next()
                # ``else if`` shares the enclosing ``end``.
                nested = self._parse_if(chained) if context == "if" else self._parse_with(chained)
                else_body = ListNode((nested,))
            else:
                self._expect(TokenKind.RIGHT, f"{{{{else}}}} of {context}")
                else_body, _ = self._parse_list({"end"})
                self._expect(TokenKind.RIGHT, "end")
        else:
            self._expect(TokenKind.RIGHT, "end")
        del self.vars[saved_vars:]
        self._leave()
        return pipe, body, else_body

    def _parse_if(self, token: Token) -> Node:
        pipe, body, else_body = self._parse_control("if", True)
        return IfNode(pipe, body, else_body, token.line)

    def _parse_with(self, token: Token) -> Node:
        pipe, body, else_body = self._parse_control("with", True)
        return WithNode(pipe, body, else_body, token.line)

    def _parse_range(self, token: Token) -> Node:
        pipe, body, else_body = self._parse_control("range", False)
        return RangeNode(pipe, body, else_body, token.line)

    def _parse_template(self, token: Token) -> Node:
        name = self._parse_operand()
        if name is None:
            raise self._error("missing name in template invocation", token)
        pipe: Optional[PipeNode] = None
        if self._peek().kind is not TokenKind.RIGHT:
            pipe = self._parse_pipeline("template", TokenKind.RIGHT)
        else:
            self._next()
        return TemplateNode(name, pipe, token.line)

    def _parse_define(self, token: Token) -> Optional[Node]:
        name_token = self._expect(TokenKind.STRING, "define clause")
        self._expect(TokenKind.RIGHT, "define clause")
        self._store_define(name_token.value, token)
        return None

    def _parse_block(self, token: Token) -> Node:
        name_token = self._expect(TokenKind.STRING, "block clause")
        pipe: Optional[PipeNode] = None
        if self._peek().kind is not TokenKind.RIGHT:
            pipe = self._parse_pipeline("block", TokenKind.RIGHT)
        else:
            self._next()
        self._store_define(name_token.value, token)
        return TemplateNode(LiteralNode(name_token.value, token.line), pipe, token.line)

    def _store_define(self, name: str, token: Token) -> None:
        self._enter(token)
        saved_vars, saved_depth = self.vars, self.range_depth
        self.vars, self.range_depth = ["$"], 0
        body, _ = self._parse_list({"end"})
        self._expect(TokenKind.RIGHT, "end")
        self.vars, self.range_depth = saved_vars, saved_depth
        self._leave()
        if name in self.defines and self.defines[name].nodes:
            raise self._error(f"template: multiple definition of template {name!r}", token)
        self.defines[name] = body

    def _parse_break(self, token: Token) -> Node:
        if self.range_depth == 0:
            raise self._error("{{break}} outside {{range}}", token)
        self._expect(TokenKind.RIGHT, "{{break}}")
        return BreakNode(token.line)

    def _parse_continue(self, token: Token) -> Node:
        if self.range_depth == 0:
            raise self._error("{{continue}} outside {{range}}", token)
        self._expect(TokenKind.RIGHT, "{{continue}}")
        return ContinueNode(token.line)

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------
    def _parse_pipeline(self, context: str, end: TokenKind) -> PipeNode:
        line = self._peek().line
        decl, is_assign = self._parse_declarations(context)
        commands: List[CommandNode] = []
        while True:
            token = self._peek()
            if token.kind is end:
                if not commands:
                    raise self._error(f"missing value for {context}", token)
                raise self._error("missing command after '|'", token)
            commands.append(self._parse_command())
            token = self._next()
            if token.kind is TokenKind.PIPE:
                continue
            if token.kind is end:
                break
            raise self._error(f"unexpected {self._describe(token)} in {context}", token)
        for index, command in enumerate(commands):
            if index == 0:
                continue
            if isinstance(command.args[0], LiteralNode):
                raise self._error(f"non executable command in pipeline stage {index + 1}", token)
        return PipeNode(tuple(decl), is_assign, tuple(commands), line)

    def _parse_declarations(self, context: str) -> Tuple[List[str], bool]:
        first, second = self._peek(), self._peek(1)
        if first.kind is not TokenKind.VARIABLE:
            return [], False
        if second.kind in (TokenKind.DECLARE, TokenKind.ASSIGN):
            self._next()
            self._next()
            if second.kind is TokenKind.ASSIGN:
                self._require_var(first)
            else:
                self.vars.append(first.value)
            return [first.value], second.kind is TokenKind.ASSIGN
        if context == "range" and second.kind is TokenKind.COMMA:
            third, fourth = self._peek(2), self._peek(3)
            if third.kind is TokenKind.VARIABLE and fourth.kind in (TokenKind.DECLARE, TokenKind.ASSIGN):
                for _ in range(4):
                    self._next()
                if fourth.kind is TokenKind.ASSIGN:
                    self._require_var(first)
                    self._require_var(third)
                else:
                    self.vars.extend([first.value, third.value])
                return [first.value, third.value], fourth.kind is TokenKind.ASSIGN
            raise self._error("too many declarations in range", first)
        return [], False

    def _parse_command(self) -> CommandNode:
        line = self._peek().line
        args: List[Operand] = []
        while True:
            operand = self._parse_operand()
            if operand is None:
                break
            args.append(operand)
        if not args:
            raise self._error(f"unexpected {self._describe(self._peek())} in command")
        if len(args) == 1 and isinstance(args[0], LiteralNode) and args[0].value is None:
            raise self._error("nil is not a command")
        return CommandNode(tuple(args), line)

    def _parse_operand(self) -> Optional[Operand]:
        token = self._peek()
        kind = token.kind
        if kind is TokenKind.FIELD:
            return FieldNode(self._field_chain(), token.line)
        if kind is TokenKind.DOT:
            self._next()
            return DotNode(token.line)
        if kind is TokenKind.VARIABLE:
            self._next()
            self._require_var(token)
            return VariableNode(token.value, self._trailing_fields(), token.line)
        if kind is TokenKind.IDENTIFIER:
            self._next()
            if token.value not in self.functions:
                raise self._error(f"function {token.value!r} not defined", token)
            return IdentifierNode(token.value, token.line)
        if kind is TokenKind.STRING:
            self._next()
            return LiteralNode(token.value, token.line)
        if kind is TokenKind.NUMBER:
            self._next()
            return LiteralNode(self._number(token), token.line)
        if kind is TokenKind.KEYWORD and token.value in ("true", "false", "nil"):
            self._next()
            value = {"true": True, "false": False, "nil": None}[token.value]
            return LiteralNode(value, token.line)
        if kind is TokenKind.LPAREN:
            self._next()
            self._enter(token)
            pipe = self._parse_pipeline("parenthesized pipeline", TokenKind.RPAREN)
            self._leave()
            names = self._trailing_fields()
            if names:
                return ChainNode(pipe, names, token.line)
            return pipe
        return None

    def _field_chain(self) -> Tuple[str, ...]:
        names = [self._next().value]
        names.extend(self._trailing_fields())
        return tuple(names)

    def _trailing_fields(self) -> Tuple[str, ...]:
        names: List[str] = []
        while self._peek().kind is TokenKind.FIELD and self._peek().adjacent:
            names.append(self._next().value)
        return tuple(names)

    def _require_var(self, token: Token) -> None:
        if token.value not in self.vars:
            raise self._error(f"undefined variable {token.value!r}", token)

    def _number(self, token: Token) -> Union[int, float]:
        text = token.value.replace("_", "")
        try:
            return int(text, 0)
        except ValueError:
            pass
        if re.fullmatch(r"[+-]?\d+", text):
            return int(text, 10)
        try:
            return float(text)
        except ValueError as exc:
            raise self._error(f"bad number syntax: {token.value!r}", token) from exc


def parse(source: str, functions: AbstractSet[str], name: str = "breach") -> Tree:
    """Compile ``source`` into a :class:`Tree`, raising on malformed input."""

    return Parser(source, functions, name).parse()

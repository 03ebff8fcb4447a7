"""Execute compiled breach templates against a context object."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Tuple

from .errors import TemplateExecutionError
from .formatting import NO_VALUE, format_value, is_true, plain
from .functions import FunctionLibrary, TemplateFunction, convert_argument
from .parser import (
    ActionNode,
    BreakNode,
    ChainNode,
    CommandNode,
    ContinueNode,
    DotNode,
    FieldNode,
    IdentifierNode,
    IfNode,
    ListNode,
    LiteralNode,
    Node,
    Operand,
    PipeNode,
    RangeNode,
    TemplateNode,
    TextNode,
    Tree,
    VariableNode,
    WithNode,
    parse,
)

COMPILE_CACHE_SIZE = 256
MAX_TEMPLATE_DEPTH = 64

_MISSING = object()


class _BreakLoop(Exception):
    pass


class _ContinueLoop(Exception):
    pass


def resolve_field(receiver: Any, name: str) -> Any:
    """Return the exported field ``name`` of ``receiver``.

    Mappings are indexed by key. Other objects must list the name in their
    ``EXPORTED_FIELDS`` whitelist; anything else raises ``LookupError``.
    """

    if receiver is None:
        return None
    if isinstance(receiver, Mapping):
        return plain(receiver.get(name))
    exported = getattr(type(receiver), "EXPORTED_FIELDS", None)
    if exported and name in exported:
        return plain(getattr(receiver, exported[name]))
    raise LookupError(f"can't evaluate field {name} in type {type(receiver).__name__}")


class _Execution:
    """State for a single run of a compiled template."""

    def __init__(self, template: "CompiledTemplate", data: Any) -> None:
        self.template = template
        self.functions = template.functions
        self.out: List[str] = []
        self.vars: List[Tuple[str, Any]] = [("$", data)]
        self.depth = 0

    def error(self, line: int, message: str) -> TemplateExecutionError:
        return TemplateExecutionError(f"{self.template.name}:{line}: executing: {message}")

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------
    def walk_list(self, dot: Any, body: ListNode) -> None:
        for node in body.nodes:
            self.walk(dot, node)

    def walk(self, dot: Any, node: Node) -> None:
        if isinstance(node, TextNode):
            self.out.append(node.text)
        elif isinstance(node, ActionNode):
            value = self.eval_pipeline(dot, node.pipe)
            if not node.pipe.decl:
                self.out.append(format_value(value, nil=NO_VALUE))
        elif isinstance(node, IfNode):
            self.walk_conditional(dot, node, replace_dot=False)
        elif isinstance(node, WithNode):
            self.walk_conditional(dot, node, replace_dot=True)
        elif isinstance(node, RangeNode):
            self.walk_range(dot, node)
        elif isinstance(node, TemplateNode):
            self.walk_template(dot, node)
        elif isinstance(node, BreakNode):
            raise _BreakLoop()
        elif isinstance(node, ContinueNode):
            raise _ContinueLoop()
        else:
            raise self.error(0, f"unknown node {type(node).__name__}")

    def walk_conditional(self, dot: Any, node: Any, replace_dot: bool) -> None:
        mark = len(self.vars)
        value = self.eval_pipeline(dot, node.pipe)
        if is_true(value):
            self.walk_list(value if replace_dot else dot, node.body)
        elif node.else_body is not None:
            self.walk_list(dot, node.else_body)
        del self.vars[mark:]

    def walk_range(self, dot: Any, node: RangeNode) -> None:
        mark = len(self.vars)
        value = self.eval_pipeline(dot, replace_decl(node.pipe))
        ran = False
        for key, item in self.iterate(value, node.line):
            ran = True
            self.bind_range_vars(node.pipe, key, item)
            try:
                self.walk_list(item, node.body)
            except _ContinueLoop:
                continue
            except _BreakLoop:
                break
            finally:
                del self.vars[mark:]
        del self.vars[mark:]
        if not ran and node.else_body is not None:
            self.walk_list(dot, node.else_body)

    def bind_range_vars(self, pipe: PipeNode, key: Any, item: Any) -> None:
        names = pipe.decl
        if not names:
            return
        values = (item,) if len(names) == 1 else (key, item)
        for name, value in zip(names, values):
            if pipe.is_assign:
                self.set_var(name, value)
            else:
                self.vars.append((name, value))

    def iterate(self, value: Any, line: int) -> Iterator[Tuple[Any, Any]]:
        if value is None:
            return iter(())
        if isinstance(value, (list, tuple)):
            return iter(enumerate(value))
        if isinstance(value, Mapping):
            return iter([(key, value[key]) for key in sorted(value, key=format_value)])
        if isinstance(value, int) and not isinstance(value, bool):
            if value < 0:
                raise self.error(line, f"range can't iterate over negative integer {value}")
            return iter((index, index) for index in range(value))
        raise self.error(line, f"range can't iterate over {format_value(value)}")

    def walk_template(self, dot: Any, node: TemplateNode) -> None:
        name = self.eval_arg(dot, node.name)
        if not isinstance(name, str):
            raise self.error(node.line, f"template name must be a string; got {format_value(name)}")
        body = self.template.tree.defines.get(name)
        if body is None:
            raise self.error(node.line, f"no such template {name!r}")
        new_dot = self.eval_pipeline(dot, node.pipe) if node.pipe is not None else None
        if self.depth >= MAX_TEMPLATE_DEPTH:
            raise self.error(node.line, f"exceeded maximum template depth ({MAX_TEMPLATE_DEPTH})")
        saved_vars = self.vars
        self.vars = [("$", new_dot)]
        self.depth += 1
        try:
            self.walk_list(new_dot, body)
        finally:
            self.depth -= 1
            self.vars = saved_vars

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------
    def eval_pipeline(self, dot: Any, pipe: PipeNode) -> Any:
        value: Any = _MISSING
        for command in pipe.commands:
            value = self.eval_command(dot, command, value)
        for name in pipe.decl:
            if pipe.is_assign:
                self.set_var(name, value)
            else:
                self.vars.append((name, value))
        return value

    def eval_command(self, dot: Any, command: CommandNode, final: Any) -> Any:
        first = command.args[0]
        if isinstance(first, IdentifierNode):
            return self.call(dot, first, command.args[1:], final)
        if len(command.args) > 1 or final is not _MISSING:
            raise self.error(command.line, f"can't give argument to non-function {describe(first)}")
        return self.eval_arg(dot, first)

    def eval_arg(self, dot: Any, node: Operand) -> Any:
        if isinstance(node, DotNode):
            return dot
        if isinstance(node, LiteralNode):
            return node.value
        if isinstance(node, FieldNode):
            return self.eval_fields(dot, node.names, node.line)
        if isinstance(node, VariableNode):
            return self.eval_fields(self.get_var(node.name, node.line), node.names, node.line)
        if isinstance(node, PipeNode):
            return self.eval_pipeline(dot, node)
        if isinstance(node, ChainNode):
            return self.eval_fields(self.eval_pipeline(dot, node.node), node.names, node.line)
        if isinstance(node, IdentifierNode):
            return self.call(dot, node, (), _MISSING)
        raise self.error(0, f"can't evaluate {type(node).__name__}")

    def eval_fields(self, receiver: Any, names: Tuple[str, ...], line: int) -> Any:
        value = receiver
        for name in names:
            try:
                value = resolve_field(value, name)
            except LookupError as exc:
                raise self.error(line, str(exc.args[0])) from exc
        return value

    def call(self, dot: Any, ident: IdentifierNode, arg_nodes: Tuple[Operand, ...], final: Any) -> Any:
        function: TemplateFunction = self.functions[ident.name]
        args = [self.eval_arg(dot, node) for node in arg_nodes]
        if final is not _MISSING:
            args.append(final)
        if not function.accepts(len(args)):
            raise self.error(
                ident.line,
                f"wrong number of args for {ident.name}: want {function.describe_arity()} got {len(args)}",
            )
        converted = []
        for position, arg in enumerate(args):
            try:
                converted.append(convert_argument(function.kind_at(position), arg))
            except TypeError as exc:
                raise self.error(
                    ident.line, f"error calling {ident.name}: wrong type for argument {position + 1}; {exc}"
                ) from exc
        try:
            return function.func(*converted)
        except Exception as exc:
            raise self.error(ident.line, f"error calling {ident.name}: {exc}") from exc

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------
    def get_var(self, name: str, line: int) -> Any:
        for var_name, value in reversed(self.vars):
            if var_name == name:
                return value
        raise self.error(line, f"undefined variable: {name}")

    def set_var(self, name: str, value: Any) -> None:
        for index in range(len(self.vars) - 1, -1, -1):
            if self.vars[index][0] == name:
                self.vars[index] = (name, value)
                return
        self.vars.append((name, value))


def replace_decl(pipe: PipeNode) -> PipeNode:
    """Return ``pipe`` without declarations; range binds them per element."""

    if not pipe.decl:
        return pipe
    return PipeNode((), False, pipe.commands, pipe.line)


def describe(node: Operand) -> str:
    if isinstance(node, FieldNode):
        return "." + ".".join(node.names)
    if isinstance(node, VariableNode):
        return node.name + "".join("." + name for name in node.names)
    if isinstance(node, LiteralNode):
        return format_value(node.value)
    if isinstance(node, DotNode):
        return "."
    return type(node).__name__


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class CompiledTemplate:
    """A parsed template bound to the function library it was compiled against."""

    source: str
    tree: Tree
    functions: FunctionLibrary
    name: str = "breach"

    def execute(self, data: Any) -> str:
        execution = _Execution(self, data)
        execution.walk_list(data, self.tree.root)
        return "".join(execution.out)


class TemplateEngine:
    """Compile and run templates with a fixed function library.

    Compiled templates are cached by source text, so rendering the same
    configured template for many breaches parses it only once.
    """

    def __init__(self, functions: FunctionLibrary, name: str = "breach") -> None:
        self.functions = functions
        self.name = name
        self._compile_cached = functools.lru_cache(maxsize=COMPILE_CACHE_SIZE)(self._compile)

    def _compile(self, source: str) -> CompiledTemplate:
        tree = parse(source, self.functions.names, self.name)
        return CompiledTemplate(source=source, tree=tree, functions=self.functions, name=self.name)

    def compile(self, source: str) -> CompiledTemplate:
        """Compile ``source``; raises :class:`TemplateCompileError` when malformed."""

        return self._compile_cached(source)

    def render(self, source: str, data: Any) -> str:
        return self.compile(source).execute(data)

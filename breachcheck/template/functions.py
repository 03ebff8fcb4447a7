"""Built-in functions available to breach templates."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote_plus

from ..facts import EMPTY_FACTS, FactStore
from .formatting import (
    format_duration,
    format_time,
    format_value,
    is_true,
    plain,
    sprint,
    sprintf,
    sprintln,
)

RESET = "\033[0m"
COLORS = {
    "black": "\033[30m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
    "white": "\033[37m",
    "gray": "\033[90m",
    "grey": "\033[90m",
    "bright-red": "\033[91m",
    "bright-green": "\033[92m",
    "bright-yellow": "\033[93m",
    "bright-blue": "\033[94m",
    "bright-magenta": "\033[95m",
    "bright-cyan": "\033[96m",
    "bright-white": "\033[97m",
    "bg-red": "\033[41m",
    "bg-green": "\033[42m",
    "bg-yellow": "\033[43m",
    "bg-blue": "\033[44m",
    "bg-magenta": "\033[45m",
    "bg-cyan": "\033[46m",
    "bg-white": "\033[47m",
}

NUMBER_SUFFIXES = ("", "K", "M", "B", "T")
BYTE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB", "EB")


class Kind(str, Enum):
    """Parameter kinds checked before a function is called."""

    ANY = "any"
    INT = "int"
    STRING = "string"
    TIME = "time"
    DURATION = "duration"


@dataclass(frozen=True)
class TemplateFunction:
    """A named callable plus the kinds of the arguments it accepts."""

    name: str
    func: Callable[..., Any]
    params: Tuple[Kind, ...] = ()
    variadic: Optional[Kind] = None

    def accepts(self, count: int) -> bool:
        if self.variadic is not None:
            return count >= len(self.params)
        return count == len(self.params)

    def describe_arity(self) -> str:
        if self.variadic is not None:
            return f"at least {len(self.params)}"
        return str(len(self.params))

    def kind_at(self, position: int) -> Kind:
        if position < len(self.params):
            return self.params[position]
        assert self.variadic is not None
        return self.variadic


def convert_argument(kind: Kind, value: Any) -> Any:
    """Return ``value`` as ``kind`` or raise ``TypeError`` when it cannot be."""

    value = plain(value)
    if kind is Kind.ANY:
        return value
    if kind is Kind.INT:
        if isinstance(value, bool):
            raise TypeError("expected int; got bool")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise TypeError(f"expected int; got {_type_name(value)}")
    if kind is Kind.STRING:
        if isinstance(value, str):
            return value
        raise TypeError(f"expected string; got {_type_name(value)}")
    if kind is Kind.TIME:
        if isinstance(value, (datetime, date)):
            return value
        raise TypeError(f"expected time; got {_type_name(value)}")
    if isinstance(value, timedelta) or (isinstance(value, int) and not isinstance(value, bool)):
        return value
    raise TypeError(f"expected duration; got {_type_name(value)}")


def _type_name(value: Any) -> str:
    if value is None:
        return "nil"
    return {str: "string", int: "int", float: "float", bool: "bool", list: "list", dict: "map"}.get(
        type(value), type(value).__name__
    )


# ----------------------------------------------------------------------
# Strings
# ----------------------------------------------------------------------
def join_values(sep: str, elems: Any) -> str:
    if elems is None:
        return ""
    if isinstance(elems, (list, tuple)):
        return sep.join(format_value(item) for item in elems)
    return format_value(elems)


def split_string(s: str, sep: str) -> List[str]:
    if sep == "":
        return list(s)
    return s.split(sep)


def title_case(s: str) -> str:
    """Upper-case the first letter of each word, leaving the rest untouched."""

    return re.sub(r"(?<!\w)\w", lambda match: match.group(0).upper(), s)


def truncate(length: int, s: str) -> str:
    if len(s) <= length:
        return s
    if length <= 3:
        return s[: max(length, 0)]
    return s[: length - 3] + "..."


def ellipsis(length: int, s: str) -> str:
    if len(s) <= length:
        return s
    return s[: max(length, 0)] + "…"


# ----------------------------------------------------------------------
# Humanisation
# ----------------------------------------------------------------------
def pluralize(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def humanize(value: Any) -> str:
    value = plain(value)
    if isinstance(value, bool):
        return format_value(value)
    if isinstance(value, (int, float)):
        return humanize_number(value)
    if isinstance(value, str):
        return humanize_string(value)
    return format_value(value)


def humanize_number(number: float) -> str:
    # Anything below the first threshold, negatives included, prints as-is.
    if number < 1000:
        if float(number).is_integer():
            return str(int(number))
        return f"{number:.1f}"
    scaled = float(number)
    index = 0
    while scaled >= 1000 and index < len(NUMBER_SUFFIXES) - 1:
        scaled /= 1000
        index += 1
    if scaled.is_integer():
        return f"{scaled:.0f}{NUMBER_SUFFIXES[index]}"
    return f"{scaled:.1f}{NUMBER_SUFFIXES[index]}"


def humanize_string(s: str) -> str:
    words = s.replace("_", " ").replace("-", " ").split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def humanize_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    divisor, exponent = 1024, 0
    remaining = size // 1024
    while remaining >= 1024 and exponent < len(BYTE_UNITS) - 2:
        divisor *= 1024
        exponent += 1
        remaining //= 1024
    return f"{size / divisor:.1f} {BYTE_UNITS[exponent + 1]}"


# ----------------------------------------------------------------------
# Sequences
# ----------------------------------------------------------------------
def length(value: Any) -> int:
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value)
    return 0


def first_item(value: Any) -> Any:
    if isinstance(value, (list, tuple)) and value:
        return value[0]
    return None


def last_item(value: Any) -> Any:
    if isinstance(value, (list, tuple)) and value:
        return value[-1]
    return None


def slice_items(start: int, end: int, value: Any) -> Any:
    if not isinstance(value, (list, tuple)):
        return value
    start = max(start, 0)
    end = min(end, len(value))
    if start >= end:
        return []
    return list(value[start:end])


def index_into(collection: Any, *keys: Any) -> Any:
    current = collection
    for key in keys:
        key = plain(key)
        if isinstance(current, Mapping):
            try:
                current = current.get(key)
            except TypeError:
                # Unhashable keys such as lists can never match.
                return None
        elif isinstance(current, (list, tuple)) and isinstance(key, int) and not isinstance(key, bool):
            current = current[key] if 0 <= key < len(current) else None
        else:
            return None
    return current


# ----------------------------------------------------------------------
# Comparison
# ----------------------------------------------------------------------
def _category(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "list"
    if isinstance(value, Mapping):
        return "map"
    return type(value).__name__


def deep_equal(a: Any, b: Any) -> bool:
    a, b = plain(a), plain(b)
    if _category(a) != _category(b):
        return False
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, Mapping):
        return a.keys() == b.keys() and all(deep_equal(a[key], b[key]) for key in a)
    return a == b


def compare_values(a: Any, b: Any) -> int:
    """Order two values: numerically, then as strings, then by printed form."""

    a, b = plain(a), plain(b)
    if _category(a) == "number" and _category(b) == "number":
        return (a > b) - (a < b)
    if isinstance(a, str) and isinstance(b, str):
        return (a > b) - (a < b)
    left, right = format_value(a), format_value(b)
    return (left > right) - (left < right)


# ----------------------------------------------------------------------
# Regular expressions
# ----------------------------------------------------------------------
_GROUP_REFERENCE = re.compile(r"\$(?:\{([A-Za-z0-9_]+)\}|([A-Za-z0-9_]+)|(\$))")


def regex_match(pattern: str, s: str) -> bool:
    try:
        return re.search(pattern, s) is not None
    except re.error:
        return False


def regex_replace(pattern: str, replacement: str, s: str) -> str:
    """Replace every match; ``$1`` and ``${name}`` refer to groups."""

    try:
        compiled = re.compile(pattern)
    except re.error:
        return s

    def expand(match: "re.Match[str]") -> str:
        def group(reference: "re.Match[str]") -> str:
            if reference.group(3):
                return "$"
            name = reference.group(1) or reference.group(2)
            try:
                value = match.group(int(name) if name.isdigit() else name)
            except (IndexError, re.error):
                return ""
            return value or ""

        return _GROUP_REFERENCE.sub(group, replacement)

    return compiled.sub(expand, s)


def regex_find(pattern: str, s: str) -> str:
    try:
        match = re.search(pattern, s)
    except re.error:
        return ""
    return match.group(0) if match else ""


# ----------------------------------------------------------------------
# Terminal markup
# ----------------------------------------------------------------------
def colorize(color: str, text: str) -> str:
    code = COLORS.get(color.lower())
    if code is None:
        return text
    return f"{code}{text}{RESET}"


def bold(text: str) -> str:
    return f"\033[1m{text}{RESET}"


def italic(text: str) -> str:
    return f"\033[3m{text}{RESET}"


def underline(text: str) -> str:
    return f"\033[4m{text}{RESET}"


# ----------------------------------------------------------------------
# Conditionals
# ----------------------------------------------------------------------
def default(fallback: Any, value: Any) -> Any:
    if value is None or value == "":
        return fallback
    return value


def empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value) == 0
    if isinstance(value, (bool, int, float)):
        return not value
    return False


# ----------------------------------------------------------------------
# Integer arithmetic
# ----------------------------------------------------------------------
def divide(a: int, b: int) -> int:
    """Divide truncating toward zero; dividing by zero yields 0."""

    if b == 0:
        return 0
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def modulo(a: int, b: int) -> int:
    """Remainder carrying the sign of the dividend; modulo zero yields 0."""

    if b == 0:
        return 0
    return a - b * divide(a, b)


# ----------------------------------------------------------------------
# Escaping
# ----------------------------------------------------------------------
_HTML_ESCAPES = {"&": "&amp;", "'": "&#39;", "<": "&lt;", ">": "&gt;", '"': "&#34;", "\0": "�"}
_JS_ESCAPES = {"\\": "\\\\", "'": "\\'", '"': '\\"', "<": "\\u003C", ">": "\\u003E", "&": "\\u0026", "=": "\\u003D"}


def _evaluated_text(args: Sequence[Any]) -> str:
    if len(args) == 1 and isinstance(args[0], str):
        return args[0]
    return sprint(args)


def html_escape(*args: Any) -> str:
    return "".join(_HTML_ESCAPES.get(char, char) for char in _evaluated_text(args))


def js_escape(*args: Any) -> str:
    out: List[str] = []
    for char in _evaluated_text(args):
        if char in _JS_ESCAPES:
            out.append(_JS_ESCAPES[char])
        elif ord(char) < 0x20:
            out.append(f"\\u{ord(char):04X}")
        else:
            out.append(char)
    return "".join(out)


def url_query(*args: Any) -> str:
    return quote_plus(_evaluated_text(args))


# ----------------------------------------------------------------------
# Registry
# ----------------------------------------------------------------------
class FunctionLibrary(Mapping[str, TemplateFunction]):
    """Immutable registry of template functions, built once and shared."""

    def __init__(self, functions: Iterable[TemplateFunction]) -> None:
        self._functions: Mapping[str, TemplateFunction] = MappingProxyType(
            {function.name: function for function in functions}
        )

    def __getitem__(self, name: str) -> TemplateFunction:
        return self._functions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    @property
    def names(self) -> FrozenSet[str]:
        return frozenset(self._functions)


def _fn(name: str, func: Callable[..., Any], *params: Kind, variadic: Optional[Kind] = None) -> TemplateFunction:
    return TemplateFunction(name=name, func=func, params=tuple(params), variadic=variadic)


ANY, INT, STR, TIME, DURATION = Kind.ANY, Kind.INT, Kind.STRING, Kind.TIME, Kind.DURATION


def build_function_library(facts: Optional[FactStore] = None) -> FunctionLibrary:
    """Return the full function library, with fact lookups bound to ``facts``."""

    store = facts if facts is not None else EMPTY_FACTS
    return FunctionLibrary(
        [
            # Strings
            _fn("printf", lambda fmt, *args: sprintf(fmt, args), STR, variadic=ANY),
            _fn("join", join_values, STR, ANY),
            _fn("split", split_string, STR, STR),
            _fn("replace", lambda s, old, new: s.replace(old, new), STR, STR, STR),
            _fn("trim", lambda s: s.strip(), STR),
            _fn("trimLeft", lambda s, cutset: s.lstrip(cutset) if cutset else s, STR, STR),
            _fn("trimRight", lambda s, cutset: s.rstrip(cutset) if cutset else s, STR, STR),
            _fn("upper", lambda s: s.upper(), STR),
            _fn("lower", lambda s: s.lower(), STR),
            _fn("title", title_case, STR),
            _fn("repeat", lambda s, count: s * max(count, 0), STR, INT),
            _fn("contains", lambda s, substr: substr in s, STR, STR),
            _fn("hasPrefix", lambda s, prefix: s.startswith(prefix), STR, STR),
            _fn("hasSuffix", lambda s, suffix: s.endswith(suffix), STR, STR),
            # Formatting
            _fn("truncate", truncate, INT, STR),
            _fn("ellipsis", ellipsis, INT, STR),
            _fn("pad", lambda width, s: s.ljust(width), INT, STR),
            _fn("padLeft", lambda width, s: s.rjust(width), INT, STR),
            # Humanisation
            _fn("pluralize", pluralize, INT, STR, STR),
            _fn("humanize", humanize, ANY),
            _fn("bytes", humanize_bytes, INT),
            # Sequences
            _fn("len", length, ANY),
            _fn("first", first_item, ANY),
            _fn("last", last_item, ANY),
            _fn("slice", slice_items, INT, INT, ANY),
            _fn("index", index_into, ANY, variadic=ANY),
            # Comparison and logic
            _fn("eq", deep_equal, ANY, ANY),
            _fn("ne", lambda a, b: not deep_equal(a, b), ANY, ANY),
            _fn("lt", lambda a, b: compare_values(a, b) < 0, ANY, ANY),
            _fn("le", lambda a, b: compare_values(a, b) <= 0, ANY, ANY),
            _fn("gt", lambda a, b: compare_values(a, b) > 0, ANY, ANY),
            _fn("ge", lambda a, b: compare_values(a, b) >= 0, ANY, ANY),
            _fn("and", lambda a, b: is_true(a) and is_true(b), ANY, ANY),
            _fn("or", lambda a, b: is_true(a) or is_true(b), ANY, ANY),
            _fn("not", lambda a: not is_true(a), ANY),
            # Regular expressions
            _fn("regexMatch", regex_match, STR, STR),
            _fn("regexReplace", regex_replace, STR, STR, STR),
            _fn("regexFind", regex_find, STR, STR),
            # Time
            _fn("now", lambda: datetime.now().astimezone()),
            _fn("date", format_time, STR, TIME),
            _fn("duration", format_duration, DURATION),
            # Terminal markup
            _fn("colorize", colorize, STR, STR),
            _fn("bold", bold, STR),
            _fn("italic", italic, STR),
            _fn("underline", underline, STR),
            # Conditionals
            _fn("default", default, ANY, ANY),
            _fn("empty", empty, ANY),
            # Integer arithmetic
            _fn("add", lambda a, b: a + b, INT, INT),
            _fn("sub", lambda a, b: a - b, INT, INT),
            _fn("mul", lambda a, b: a * b, INT, INT),
            _fn("div", divide, INT, INT),
            _fn("mod", modulo, INT, INT),
            _fn("max", max, INT, INT),
            _fn("min", min, INT, INT),
            # Facts
            _fn("lookup", store.lookup, STR, STR),
            _fn("lookupDefault", store.lookup_default, STR, STR, ANY),
            _fn("lookupFactAsStringMap", store.lookup_string, STR, STR),
            # Printing and escaping
            _fn("print", lambda *args: sprint(args), variadic=ANY),
            _fn("println", lambda *args: sprintln(args), variadic=ANY),
            _fn("html", html_escape, variadic=ANY),
            _fn("js", js_escape, variadic=ANY),
            _fn("urlquery", url_query, variadic=ANY),
        ]
    )

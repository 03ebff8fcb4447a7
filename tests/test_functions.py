from datetime import datetime, timedelta

import pytest

from breachcheck.facts import FactStore
from breachcheck.template.formatting import format_duration, format_time, sprint, sprintf
from breachcheck.template.functions import (
    Kind,
    build_function_library,
    colorize,
    compare_values,
    convert_argument,
    deep_equal,
    divide,
    empty,
    html_escape,
    humanize,
    humanize_bytes,
    humanize_number,
    humanize_string,
    index_into,
    js_escape,
    join_values,
    modulo,
    pluralize,
    regex_find,
    regex_match,
    regex_replace,
    slice_items,
    split_string,
    title_case,
    truncate,
    ellipsis,
    url_query,
)

EXPECTED_FUNCTIONS = [
    "printf", "join", "split", "replace", "trim", "trimLeft", "trimRight",
    "upper", "lower", "title", "repeat", "contains", "hasPrefix", "hasSuffix",
    "truncate", "ellipsis", "pad", "padLeft",
    "pluralize", "humanize", "bytes",
    "len", "first", "last", "slice", "index",
    "eq", "ne", "lt", "le", "gt", "ge", "and", "or", "not",
    "regexMatch", "regexReplace", "regexFind",
    "now", "date", "duration",
    "colorize", "bold", "italic", "underline",
    "default", "empty",
    "add", "sub", "mul", "div", "mod", "max", "min",
    "lookup", "lookupDefault", "lookupFactAsStringMap",
    "print", "println", "html", "js", "urlquery",
]


def test_library_registers_every_function():
    library = build_function_library()

    for name in EXPECTED_FUNCTIONS:
        assert name in library, name
    assert library.names == frozenset(library)


def test_library_is_read_only():
    library = build_function_library()

    with pytest.raises(TypeError):
        library._functions["upper"] = None  # type: ignore[index]


@pytest.mark.parametrize(
    "value, expected",
    [
        (500, "500"),
        (999, "999"),
        (1500, "1.5K"),
        (1000, "1K"),
        (1_000_000, "1M"),
        (999_999, "1000.0K"),
        (2_500_000_000, "2.5B"),
        (10**12, "1T"),
        (-1500, "-1500"),
        (-42, "-42"),
    ],
)
def test_humanize_number(value, expected):
    assert humanize_number(value) == expected


def test_humanize_dispatches_on_type():
    assert humanize("test_string") == "Test String"
    assert humanize_string("kebab-case-NAME") == "Kebab Case Name"
    assert humanize(1500) == "1.5K"
    assert humanize(True) == "true"
    assert humanize(None) == "<nil>"


@pytest.mark.parametrize(
    "size, expected",
    [
        (512, "512 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (1_048_576, "1.0 MB"),
        (1024**6, "1.0 EB"),
        (-1024, "-1024 B"),
        (-5, "-5 B"),
    ],
)
def test_humanize_bytes(size, expected):
    assert humanize_bytes(size) == expected


@pytest.mark.parametrize(
    "length, text, expected",
    [
        (10, "short", "short"),
        (8, "hello world", "hello..."),
        (10, "This is a very long string", "This is..."),
        (3, "hello", "hel"),
        (0, "hello", ""),
        (-1, "hello", ""),
    ],
)
def test_truncate(length, text, expected):
    assert truncate(length, text) == expected


@pytest.mark.parametrize(
    "count, expected",
    [
        (0, "breaches"),
        (1, "breach"),
        (2, "breaches"),
        (-1, "breaches"),
    ],
)
def test_pluralize(count, expected):
    assert pluralize(count, "breach", "breaches") == expected


def test_ellipsis_appends_single_character():
    assert ellipsis(5, "hello world") == "hello…"
    assert ellipsis(20, "hello") == "hello"


def test_slice_clamps_bounds():
    assert slice_items(-1, 10, [1, 2, 3]) == [1, 2, 3]
    assert slice_items(1, 2, [1, 2, 3]) == [2]
    assert slice_items(2, 1, [1, 2, 3]) == []
    assert slice_items(0, 1, "text") == "text"


def test_integer_division_never_faults():
    assert divide(7, 2) == 3
    assert divide(-7, 2) == -3
    assert divide(5, 0) == 0
    assert modulo(-7, 2) == -1
    assert modulo(7, 0) == 0


def test_comparisons_accept_mixed_types():
    assert compare_values(5, 5) == 0
    assert compare_values(10, 5) > 0
    assert compare_values(2, 10.5) < 0
    assert compare_values("a", "b") < 0
    assert compare_values(1, "a") < 0
    assert compare_values(None, "x") != 0


def test_equality_is_structural_and_type_aware():
    assert deep_equal([1, {"a": "b"}], [1, {"a": "b"}])
    assert deep_equal(1, 1.0)
    assert not deep_equal(1, True)
    assert not deep_equal("5", 5)
    assert not deep_equal([1, 2], [1, 2, 3])


def test_invalid_regex_patterns_degrade():
    assert regex_match("[", "x") is False
    assert regex_replace("[", "y", "abc") == "abc"
    assert regex_find("[", "abc") == ""


def test_regex_replace_expands_groups():
    assert regex_replace(r"(\w+)@(\w+)", "$2 at $1", "user@example") == "example at user"
    assert regex_replace(r"(?P<word>\w+)", "<${word}>", "hi") == "<hi>"
    assert regex_replace(r"(a)", "[$9]", "a") == "[]"
    assert regex_find(r"\d+", "build 42 ok") == "42"
    assert regex_match(r"^v\d", "v2.0") is True


def test_colorize_is_case_insensitive():
    assert colorize("red", "error") == "\033[31merror\033[0m"
    assert colorize("RED", "x") == "\033[31mx\033[0m"
    assert colorize("bg-blue", "x") == "\033[44mx\033[0m"
    assert colorize("nope", "x") == "x"


def test_empty_and_default():
    library = build_function_library()
    default = library["default"].func

    assert empty(None) and empty("") and empty([]) and empty({}) and empty(0) and empty(False)
    assert not empty("x") and not empty({"a": 1}) and not empty(0.5)
    assert default("fallback", "") == "fallback"
    assert default("fallback", None) == "fallback"
    assert default("fallback", 0) == 0


def test_string_helpers():
    assert join_values(", ", ["a", 1, True]) == "a, 1, true"
    assert join_values(",", None) == ""
    assert split_string("a,b", ",") == ["a", "b"]
    assert split_string("abc", "") == ["a", "b", "c"]
    assert title_case("hello world-foo") == "Hello World-Foo"
    assert index_into({"a": {"b": 2}}, "a", "b") == 2
    assert index_into([1, 2], 5) is None


def test_index_with_unhashable_key_yields_nil():
    assert index_into({"a": 1}, ["a"]) is None
    assert index_into({"a": 1}, {"k": "v"}) is None
    assert index_into({"a": {"b": 2}}, "a", ["b"]) is None


def test_escaping_helpers():
    assert html_escape("<a href='x'>") == "&lt;a href=&#39;x&#39;&gt;"
    assert js_escape("it's <b>") == "it\\'s \\u003Cb\\u003E"
    assert url_query("a b&c") == "a+b%26c"


def test_printf_verbs():
    assert sprintf("%s has %d items", ["box", 3]) == "box has 3 items"
    assert sprintf("%5.2f", [3.14159]) == " 3.14"
    assert sprintf("%05d", [42]) == "00042"
    assert sprintf("%-5s|", ["ab"]) == "ab   |"
    assert sprintf("%v", [[1, 2]]) == "[1 2]"
    assert sprintf("%q", ["hi"]) == '"hi"'
    assert sprintf("%x", [255]) == "ff"
    assert sprintf("%d", []) == "%!d(MISSING)"
    assert sprintf("100%%", []) == "100%"


def test_sprint_spaces_only_between_non_strings():
    assert sprint(["a", 1, 2, "b"]) == "a1 2b"


def test_time_and_duration_formatting():
    moment = datetime(2024, 3, 5, 14, 7, 9)

    assert format_time("2006-01-02 15:04:05", moment) == "2024-03-05 14:07:09"
    assert format_time("Jan 2, 2006", moment) == "Mar 5, 2024"
    assert format_duration(timedelta(hours=1, minutes=2, seconds=3)) == "1h2m3s"
    assert format_duration(timedelta(seconds=1.5)) == "1.5s"
    assert format_duration(timedelta(minutes=5)) == "5m0s"
    assert format_duration(1_500_000) == "1.5ms"
    assert format_duration(0) == "0s"


def test_convert_argument_checks_kinds():
    assert convert_argument(Kind.INT, 3.0) == 3
    assert convert_argument(Kind.STRING, "x") == "x"
    with pytest.raises(TypeError):
        convert_argument(Kind.INT, "5")
    with pytest.raises(TypeError):
        convert_argument(Kind.INT, True)
    with pytest.raises(TypeError):
        convert_argument(Kind.STRING, 5)
    with pytest.raises(TypeError):
        convert_argument(Kind.TIME, "2024-01-01")


def test_fact_lookups_bind_to_store():
    facts = FactStore({"composer": {"require": {"php": "^8.1"}}, "env": {"APP_ENV": "prod", "DEBUG": 1}})
    library = build_function_library(facts)

    assert library["lookup"].func("composer", "require.php") == "^8.1"
    assert library["lookup"].func("missing", "key") is None
    assert library["lookupDefault"].func("env", "NOPE", "dev") == "dev"
    assert library["lookupFactAsStringMap"].func("env", "APP_ENV") == "prod"
    assert library["lookupFactAsStringMap"].func("env", "DEBUG") == ""

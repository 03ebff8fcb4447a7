import pytest

from breachcheck.breach import KeyValueBreach
from breachcheck.severity import Severity
from breachcheck.template.config import TemplateContext
from breachcheck.template.engine import TemplateEngine
from breachcheck.template.errors import TemplateCompileError, TemplateError, TemplateExecutionError
from breachcheck.template.functions import FunctionLibrary, Kind, TemplateFunction, build_function_library


@pytest.fixture
def engine():
    return TemplateEngine(build_function_library())


@pytest.fixture
def context():
    breach = KeyValueBreach(
        check_type="file",
        check_name="file-check",
        severity=Severity.HIGH,
        key_label="File",
        key="config.yml",
        value_label="Error",
        value="invalid syntax",
    )
    return TemplateContext.for_breach(
        breach,
        "json",
        {"team": "platform", "limits": {"max": 3}},
    )


@pytest.mark.parametrize(
    "source, expected",
    [
        ("plain text", "plain text"),
        ("{{ .Breach.Value | upper }}", "INVALID SYNTAX"),
        ('{{ .Breach.Key | printf "file=%s" }}', "file=config.yml"),
        ("{{ .Severity }}/{{ .Breach.Severity }}", "high/high"),
        ("{{ .OutputFormat }} {{ .CheckName }} {{ .CheckType }}", "json file-check file"),
        ("{{ .Breach.BreachType }}", "key-value"),
        ("{{ .Context.team }}", "platform"),
        ("{{ .Context.limits.max }}", "3"),
        ("{{ .Context.nothing }}", "<no value>"),
        ("{{ .Context.nothing.deeper }}", "<no value>"),
        ('{{ index .Context "team" }}', "platform"),
        ("{{ (len .Breach.Key) | add 1 }}", "11"),
        ("{{ printf \"%c\" 'A' }}", "A"),
        ('{{ "a\\tb" }}', "a\tb"),
        ("{{ `raw\\n` }}", "raw\\n"),
        ("{{ 0x1F }} {{ -3 }} {{ 2.5 }}", "31 -3 2.5"),
        ("{{ true }} {{ false }}", "true false"),
        ("a  {{- 1 -}}  b", "a1b"),
        ("a \t{{-\t1\t-}}\r\n b", "a1b"),
        ("a \r\n{{-\r\n1 }}", "a1"),
        ("x {{-3}}", "x -3"),
        ("{{ ((((1)))) }}", "1"),
        ("a{{/* a comment */}}b", "ab"),
        ("{{ $x := 1 }}{{ $x = add $x 2 }}{{ $x }}", "3"),
        ('{{ split "a,b" "," }}', "[a b]"),
        ('{{ "syntax" | contains .Breach.Value }}', "true"),
        ('{{ "b" | lt "a" }}', "true"),
        ("{{ .Breach.RemediationResult.Messages | len }}", "0"),
    ],
)
def test_render_expressions(engine, context, source, expected):
    assert engine.render(source, context) == expected


def test_if_else_if_chain(engine, context):
    source = '{{ if eq .Severity "low" }}L{{ else if eq .Severity "high" }}H{{ else }}N{{ end }}'

    assert engine.render(source, context) == "H"
    assert engine.render('{{ if .Context.nothing }}yes{{ else }}no{{ end }}', context) == "no"


def test_with_rebinds_dot(engine, context):
    assert engine.render("{{ with .Context.team }}team={{ . }}{{ else }}none{{ end }}", context) == "team=platform"
    assert engine.render("{{ with .Context.nothing }}x{{ else }}none{{ end }}", context) == "none"


def test_range_over_sequences(engine):
    data = {"items": ["a", "b", "c"], "m": {"b": 2, "a": 1}}

    assert engine.render("{{ range $i, $v := .items }}{{ $i }}={{ $v }};{{ end }}", data) == "0=a;1=b;2=c;"
    assert engine.render("{{ range $k, $v := .m }}{{ $k }}{{ $v }}{{ end }}", data) == "a1b2"
    assert engine.render("{{ range .items }}[{{ . }}]{{ end }}", data) == "[a][b][c]"
    assert engine.render("{{ range 3 }}{{ . }}{{ end }}", data) == "012"
    assert engine.render("{{ range .missing }}x{{ else }}none{{ end }}", data) == "none"


def test_range_break_and_continue(engine):
    source = (
        '{{ range . }}{{ if eq . "b" }}{{ continue }}{{ end }}'
        '{{ if eq . "d" }}{{ break }}{{ end }}{{ . }}{{ end }}'
    )

    assert engine.render(source, ["a", "b", "c", "d", "e"]) == "ac"


def test_range_scope_does_not_leak(engine):
    source = "{{ $n := 0 }}{{ range .items }}{{ $n = add $n 1 }}{{ end }}{{ $n }}"

    assert engine.render(source, {"items": [1, 2, 3]}) == "3"


def test_template_lookup_by_output_format(engine, context):
    source = (
        '{{ define "json" }}J:{{ .Breach.Key }}{{ end }}'
        '{{ define "pretty" }}P{{ end }}'
        "{{ template .OutputFormat . }}"
    )

    assert engine.render(source, context) == "J:config.yml"


def test_block_defines_and_runs(engine, context):
    assert engine.render('{{ block "greet" .CheckName }}hi {{ . }}{{ end }}', context) == "hi file-check"


def test_compiled_templates_are_cached(engine):
    first = engine.compile("{{ upper . }}")

    assert engine.compile("{{ upper . }}") is first
    assert first.execute("x") == "X"
    assert first.execute("y") == "Y"


@pytest.mark.parametrize(
    "source, message",
    [
        ("{{ .Breach.Value | }}", "missing command after '|'"),
        ("{{ unknownFn 1 }}", "function 'unknownFn' not defined"),
        ("{{ if true }}x", "unexpected EOF"),
        ("{{ $y }}", "undefined variable '$y'"),
        ("{{ end }}", "unexpected {{end}}"),
        ("{{ .X ", "unclosed action"),
        ("{{ }}", "missing value for command"),
        ("{{ nil }}", "nil is not a command"),
        ('{{ .X | "lit" }}', "non executable command"),
        ("{{ break }}", "{{break}} outside {{range}}"),
        ('{{ "open }}', "unterminated quoted string"),
        ("{{/* open", "unclosed comment"),
    ],
)
def test_compile_errors(engine, source, message):
    with pytest.raises(TemplateCompileError) as excinfo:
        engine.compile(source)

    assert message in str(excinfo.value)
    assert str(excinfo.value).startswith("breach:1:")


@pytest.mark.parametrize(
    "source, message",
    [
        ("{{ .Breach.Nope }}", "can't evaluate field Nope"),
        ("{{ .Breach.__class__ }}", "can't evaluate field __class__"),
        ("{{ .Breach.check_name }}", "can't evaluate field check_name"),
        ("{{ .Breach.Key.Foo }}", "can't evaluate field Foo in type str"),
        ("{{ add 1 }}", "wrong number of args for add: want 2 got 1"),
        ('{{ add "a" 1 }}', "wrong type for argument 1"),
        ("{{ 5 | truncate 3 }}", "wrong type for argument 2"),
        ("{{ .CheckName 1 }}", "can't give argument to non-function .CheckName"),
        ("{{ range .CheckName }}{{ end }}", "range can't iterate over file-check"),
        ('{{ template "missing" }}', "no such template 'missing'"),
    ],
)
def test_execution_errors(engine, context, source, message):
    compiled = engine.compile(source)

    with pytest.raises(TemplateExecutionError) as excinfo:
        compiled.execute(context)

    assert message in str(excinfo.value)


def test_errors_report_line_numbers(engine, context):
    with pytest.raises(TemplateExecutionError) as excinfo:
        engine.render("line one\n{{ .Nope }}", context)

    assert str(excinfo.value).startswith("breach:2:")
    assert issubclass(TemplateExecutionError, TemplateError)


def test_recursive_templates_are_bounded(engine):
    source = '{{ define "loop" }}{{ template "loop" . }}{{ end }}{{ template "loop" . }}'

    with pytest.raises(TemplateExecutionError) as excinfo:
        engine.render(source, None)

    assert "maximum template depth" in str(excinfo.value)


@pytest.mark.parametrize(
    "source",
    [
        "{{ " + "(" * 150 + "1" + ")" * 150 + " }}",
        "{{ if true }}" * 150 + "x" + "{{ end }}" * 150,
        "{{ with 1 }}" * 60 + "{{ range 1 }}" * 60 + "{{ end }}" * 120,
    ],
)
def test_deep_nesting_is_a_compile_error(engine, source):
    with pytest.raises(TemplateCompileError) as excinfo:
        engine.compile(source)

    assert "maximum nesting depth" in str(excinfo.value)


def test_nesting_below_the_limit_renders(engine):
    source = "{{ if true }}" * 90 + "{{ " + "(" * 9 + "1" + ")" * 9 + " }}" + "{{ end }}" * 90

    assert engine.render(source, None) == "1"


def test_unexpected_function_failure_becomes_execution_error():
    def explode(value):
        raise KeyError(value)

    engine = TemplateEngine(FunctionLibrary([TemplateFunction("explode", explode, (Kind.ANY,))]))

    with pytest.raises(TemplateExecutionError) as excinfo:
        engine.render('{{ explode "x" }}', None)

    assert "error calling explode" in str(excinfo.value)

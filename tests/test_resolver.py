import pytest

from breachcheck.template.config import BreachTemplate
from breachcheck.template.resolver import RenderMode, resolve


def test_format_specific_template_wins():
    template = BreachTemplate(templates={"json": "A"}, template="B")

    resolution = resolve(template, "json")

    assert resolution.mode is RenderMode.ENHANCED_PER_FORMAT
    assert resolution.source == "A"
    assert resolution.is_enhanced


def test_default_entry_precedes_single_template():
    template = BreachTemplate(templates={"json": "A", "default": "D"}, template="B")

    assert resolve(template, "pretty").source == "D"


def test_single_template_used_without_matching_entry():
    template = BreachTemplate(templates={"json": "A"}, template="B")

    resolution = resolve(template, "junit")

    assert resolution.mode is RenderMode.ENHANCED_SINGLE
    assert resolution.source == "B"


def test_empty_format_entry_falls_through():
    template = BreachTemplate(templates={"table": "", "default": "D"})

    assert resolve(template, "table").source == "D"


@pytest.mark.parametrize(
    "template",
    [
        BreachTemplate(type="key-value"),
        BreachTemplate(value="{{ .Breach.Value }}"),
        BreachTemplate(key_label="File"),
        BreachTemplate(templates={"json": "A"}),
    ],
)
def test_legacy_mode_when_anything_is_configured(template):
    resolution = resolve(template, "pretty")

    assert resolution.mode is RenderMode.LEGACY_PER_FIELD
    assert not resolution.is_enhanced


def test_raw_mode_when_nothing_is_configured():
    template = BreachTemplate(context={"only": "context"})

    assert resolve(template, "pretty").mode is RenderMode.RAW


def test_breach_template_from_yaml_keys():
    template = BreachTemplate.from_dict(
        {
            "type": "key-value",
            "key-label": "File",
            "value-label": "Error",
            "templates": {"json": "{{ .Breach.Value }}"},
            "context": {"owner": "platform"},
        }
    )

    assert template.key_label == "File"
    assert template.value_label == "Error"
    assert template.templates == {"json": "{{ .Breach.Value }}"}
    assert template.context == {"owner": "platform"}
    assert BreachTemplate.from_dict(None) == BreachTemplate()


@pytest.mark.parametrize(
    "data",
    [
        ["not", "a", "mapping"],
        {"template": 5},
        {"templates": ["pretty"]},
        {"templates": {"pretty": 1}},
        {"context": "x"},
        {"colour": "red"},
    ],
)
def test_breach_template_rejects_bad_config(data):
    with pytest.raises(ValueError):
        BreachTemplate.from_dict(data)

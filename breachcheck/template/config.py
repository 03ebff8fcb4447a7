"""Breach template configuration and the context templates are evaluated against."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Mapping, Optional

if TYPE_CHECKING:
    from ..breach import Breach

OUTPUT_FORMAT_PRETTY = "pretty"
OUTPUT_FORMAT_TABLE = "table"
OUTPUT_FORMAT_JSON = "json"
OUTPUT_FORMAT_JUNIT = "junit"
OUTPUT_FORMATS = (OUTPUT_FORMAT_PRETTY, OUTPUT_FORMAT_TABLE, OUTPUT_FORMAT_JSON, OUTPUT_FORMAT_JUNIT)
DEFAULT_OUTPUT_FORMAT = OUTPUT_FORMAT_PRETTY
DEFAULT_TEMPLATE_KEY = "default"

_STRING_KEYS = {
    "type": "type",
    "key-label": "key_label",
    "key": "key",
    "value-label": "value_label",
    "value": "value",
    "template": "template",
}


@dataclass
class BreachTemplate:
    """How the breaches of one check should be displayed.

    ``template`` and ``templates`` hold free-form templates over the whole
    breach; the remaining string fields are the older per-field templates.
    """

    type: str = ""
    key_label: str = ""
    key: str = ""
    value_label: str = ""
    value: str = ""
    template: str = ""
    templates: Dict[str, str] = field(default_factory=dict)
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "BreachTemplate":
        """Build a template from its YAML mapping, validating field types."""

        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError(f"breach-template must be a mapping, got {type(data).__name__}")
        unknown = set(data) - set(_STRING_KEYS) - {"templates", "context"}
        if unknown:
            raise ValueError(f"Unknown breach-template keys: {', '.join(sorted(map(str, unknown)))}")

        kwargs: Dict[str, Any] = {}
        for key, attr in _STRING_KEYS.items():
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ValueError(f"breach-template '{key}' must be a string")
            kwargs[attr] = value

        templates = data.get("templates") or {}
        if not isinstance(templates, Mapping) or not all(
            isinstance(name, str) and isinstance(source, str) for name, source in templates.items()
        ):
            raise ValueError("breach-template 'templates' must map output formats to strings")
        context = data.get("context") or {}
        if not isinstance(context, Mapping):
            raise ValueError("breach-template 'context' must be a mapping")

        return cls(templates=dict(templates), context=dict(context), **kwargs)

    def is_configured(self) -> bool:
        """Return True when any display field is set."""

        return any(
            (
                self.type,
                self.template,
                self.templates,
                self.key_label,
                self.key,
                self.value_label,
                self.value,
            )
        )


@dataclass(frozen=True)
class TemplateContext:
    """The values a template can reach, built fresh for every evaluation."""

    breach: "Breach"
    output_format: str = DEFAULT_OUTPUT_FORMAT
    severity: str = ""
    check_name: str = ""
    check_type: str = ""
    context: Mapping[str, Any] = field(default_factory=dict)

    EXPORTED_FIELDS: ClassVar[Mapping[str, str]] = {
        "Breach": "breach",
        "OutputFormat": "output_format",
        "Severity": "severity",
        "CheckName": "check_name",
        "CheckType": "check_type",
        "Context": "context",
    }

    @classmethod
    def for_breach(
        cls,
        breach: "Breach",
        output_format: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> "TemplateContext":
        return cls(
            breach=breach,
            output_format=output_format,
            severity=breach.severity.value,
            check_name=breach.check_name,
            check_type=breach.check_type,
            context=copy.deepcopy(dict(context or {})),
        )

"""Breach data model: the three shapes a finding can take."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Mapping, Optional, Protocol, Union

from .remediation import (
    RemediationResult,
    RemediationStatus,
    Remediator,
)
from .severity import DEFAULT_SEVERITY, Severity
from .template.formatting import format_value

if TYPE_CHECKING:
    from .template.config import BreachTemplate


class BreachType(str, Enum):
    """Discriminator tag carried by every breach."""

    VALUE = "value"
    KEY_VALUE = "key-value"
    KEY_VALUES = "key-values"


class _RemediationMixin:
    """Remediation hooks shared by every breach shape."""

    remediator: Optional[Remediator]
    remediation_result: RemediationResult

    def set_remediator(self, remediator: Optional[Remediator]) -> None:
        self.remediator = remediator

    def set_remediation(self, status: RemediationStatus, message: str) -> None:
        self.remediation_result.status = status
        if message:
            self.remediation_result.add_message(message)

    def perform_remediation(self) -> None:
        """Run the attached remediator and record its outcome."""

        if self.remediator is None:
            self.set_remediation(RemediationStatus.NO_SUPPORT, "no remediator found")
            return
        outcome = self.remediator.remediate()
        self.remediation_result = RemediationResult(
            status=outcome.status,
            messages=list(outcome.messages),
        )


def _common_dict(breach: "Breach") -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "breach-type": breach.breach_type.value,
        "check-type": breach.check_type,
        "check-name": breach.check_name,
        "severity": breach.severity.value,
    }
    return data


def _remediation_dict(breach: "Breach") -> Dict[str, Any]:
    if breach.remediation_result.is_empty():
        return {}
    return {"remediation": breach.remediation_result.to_dict()}


@dataclass
class ValueBreach(_RemediationMixin):
    """A single offending value with an optional label."""

    check_type: str = ""
    check_name: str = ""
    severity: Severity = DEFAULT_SEVERITY
    value_label: str = ""
    value: Any = ""
    remediation_result: RemediationResult = field(default_factory=RemediationResult)
    remediator: Optional[Remediator] = field(default=None, repr=False, compare=False)

    breach_type: ClassVar[BreachType] = BreachType.VALUE
    EXPORTED_FIELDS: ClassVar[Mapping[str, str]] = {
        "BreachType": "breach_type",
        "CheckType": "check_type",
        "CheckName": "check_name",
        "Severity": "severity",
        "ValueLabel": "value_label",
        "Value": "value",
        "RemediationResult": "remediation_result",
    }

    def __str__(self) -> str:
        if self.value_label:
            return f"[{self.value_label}] {format_value(self.value)}"
        return format_value(self.value)

    def to_dict(self) -> Dict[str, Any]:
        data = _common_dict(self)
        if self.value_label:
            data["value-label"] = self.value_label
        data["value"] = self.value
        data.update(_remediation_dict(self))
        return data


@dataclass
class KeyValueBreach(_RemediationMixin):
    """An offending value found at a key or location."""

    check_type: str = ""
    check_name: str = ""
    severity: Severity = DEFAULT_SEVERITY
    key_label: str = ""
    key: str = ""
    value_label: str = ""
    value: Any = ""
    expected_value: Any = None
    remediation_result: RemediationResult = field(default_factory=RemediationResult)
    remediator: Optional[Remediator] = field(default=None, repr=False, compare=False)

    breach_type: ClassVar[BreachType] = BreachType.KEY_VALUE
    EXPORTED_FIELDS: ClassVar[Mapping[str, str]] = {
        "BreachType": "breach_type",
        "CheckType": "check_type",
        "CheckName": "check_name",
        "Severity": "severity",
        "KeyLabel": "key_label",
        "Key": "key",
        "ValueLabel": "value_label",
        "Value": "value",
        "ExpectedValue": "expected_value",
        "RemediationResult": "remediation_result",
    }

    def __str__(self) -> str:
        return _keyed_string(self.key_label, self.key, self.value_label, format_value(self.value))

    def to_dict(self) -> Dict[str, Any]:
        data = _common_dict(self)
        if self.key_label:
            data["key-label"] = self.key_label
        data["key"] = self.key
        if self.value_label:
            data["value-label"] = self.value_label
        data["value"] = self.value
        if self.expected_value is not None:
            data["expected-value"] = self.expected_value
        data.update(_remediation_dict(self))
        return data


@dataclass
class KeyValuesBreach(_RemediationMixin):
    """A key or location with several offending values."""

    check_type: str = ""
    check_name: str = ""
    severity: Severity = DEFAULT_SEVERITY
    key_label: str = ""
    key: str = ""
    value_label: str = ""
    values: List[Any] = field(default_factory=list)
    remediation_result: RemediationResult = field(default_factory=RemediationResult)
    remediator: Optional[Remediator] = field(default=None, repr=False, compare=False)

    breach_type: ClassVar[BreachType] = BreachType.KEY_VALUES
    EXPORTED_FIELDS: ClassVar[Mapping[str, str]] = {
        "BreachType": "breach_type",
        "CheckType": "check_type",
        "CheckName": "check_name",
        "Severity": "severity",
        "KeyLabel": "key_label",
        "Key": "key",
        "ValueLabel": "value_label",
        "Values": "values",
        "RemediationResult": "remediation_result",
    }

    def __str__(self) -> str:
        return _keyed_string(self.key_label, self.key, self.value_label, format_value(self.values))

    def to_dict(self) -> Dict[str, Any]:
        data = _common_dict(self)
        if self.key_label:
            data["key-label"] = self.key_label
        data["key"] = self.key
        if self.value_label:
            data["value-label"] = self.value_label
        data["values"] = list(self.values)
        data.update(_remediation_dict(self))
        return data


Breach = Union[ValueBreach, KeyValueBreach, KeyValuesBreach]


class BreachTemplater(Protocol):
    """Collector that owns a breach template and receives rendered breaches."""

    def add_breach(self, breach: Breach) -> None:
        """Append a rendered breach."""

    def get_breach_template(self) -> "BreachTemplate":
        """Return the template configured for this collector."""


def _keyed_string(key_label: str, key: str, value_label: str, value: str) -> str:
    if key_label and value_label:
        return f"[{key_label}:{key}] {value_label}: {value}"
    if key_label:
        return f"[{key_label}:{key}] {value}"
    if value_label:
        return f"[{key}] {value_label}: {value}"
    return f"[{key}] {value}"


def breach_from_dict(data: Mapping[str, Any]) -> Breach:
    """Build a breach from a mapping using the JSON report field names."""

    if not isinstance(data, Mapping):
        raise ValueError(f"Breach definition must be a mapping, got {type(data).__name__}")
    raw_type = data.get("breach-type") or ("key-values" if "values" in data else "key-value" if "key" in data else "value")
    try:
        breach_type = BreachType(raw_type)
    except ValueError as exc:
        raise ValueError(f"Unknown breach type {raw_type!r}") from exc

    common = {
        "check_type": str(data.get("check-type", "")),
        "check_name": str(data.get("check-name", "")),
        "severity": Severity.parse(data.get("severity")),
        "value_label": str(data.get("value-label", "")),
    }
    if breach_type is BreachType.VALUE:
        return ValueBreach(value=data.get("value", ""), **common)
    if breach_type is BreachType.KEY_VALUE:
        return KeyValueBreach(
            key_label=str(data.get("key-label", "")),
            key=str(data.get("key", "")),
            value=data.get("value", ""),
            expected_value=data.get("expected-value"),
            **common,
        )
    values = data.get("values") or []
    if not isinstance(values, (list, tuple)):
        raise ValueError("'values' of a key-values breach must be a list")
    return KeyValuesBreach(
        key_label=str(data.get("key-label", "")),
        key=str(data.get("key", "")),
        values=list(values),
        **common,
    )

"""Load check definitions, their breaches and breach templates from YAML."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .breach import Breach, breach_from_dict
from .severity import DEFAULT_SEVERITY, Severity
from .template.config import BreachTemplate
from .utils.fileio import read_yaml_file


@dataclass
class CheckDefinition:
    """A configured check and the breaches its analyser reported."""

    name: str
    check_type: str = ""
    severity: Severity = DEFAULT_SEVERITY
    breach_template: BreachTemplate = field(default_factory=BreachTemplate)
    breaches: List[Breach] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CheckDefinition":
        if not isinstance(data, Mapping):
            raise ValueError(f"Check entry must be a mapping, got {type(data).__name__}")
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Check entry requires a non-empty 'name'")
        check_type = str(data.get("type", ""))
        severity = Severity.parse(data.get("severity"))
        raw_breaches = data.get("breaches") or []
        if not isinstance(raw_breaches, list):
            raise ValueError(f"'breaches' of check {name!r} must be a list")

        breaches: List[Breach] = []
        for entry in raw_breaches:
            if not isinstance(entry, Mapping):
                raise ValueError(f"Breach of check {name!r} must be a mapping")
            defaults = {"check-name": name, "check-type": check_type, "severity": severity.value}
            breaches.append(breach_from_dict({**defaults, **entry}))

        return cls(
            name=name,
            check_type=check_type,
            severity=severity,
            breach_template=BreachTemplate.from_dict(data.get("breach-template")),
            breaches=breaches,
        )


@dataclass
class ChecksDocument:
    """Top-level contents of a checks file."""

    checks: List[CheckDefinition] = field(default_factory=list)
    facts: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ChecksDocument":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("Checks document must be a mapping with a 'checks' list")
        raw_checks = data.get("checks") or []
        if not isinstance(raw_checks, list):
            raise ValueError("'checks' must be a list")
        facts = data.get("facts") or {}
        if not isinstance(facts, Mapping):
            raise ValueError("'facts' must be a mapping of fact id to data")
        return cls(
            checks=[CheckDefinition.from_dict(entry) for entry in raw_checks],
            facts=dict(facts),
        )


def load_checks(path: Path) -> Optional[ChecksDocument]:
    """Return the checks document at ``path``, or ``None`` when it is missing."""

    data = read_yaml_file(path)
    if data is None and not path.exists():
        return None
    return ChecksDocument.from_dict(data)


def load_facts(path: Path) -> Dict[str, Any]:
    """Return a facts mapping from a standalone YAML file."""

    data = read_yaml_file(path)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Facts file {path} must contain a mapping")
    return dict(data)

"""Severity definitions for breaches."""

from __future__ import annotations

from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Enumerate the supported severity levels for breaches."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def exit_priority(self) -> int:
        """Return an integer ranking to drive exit code decisions."""

        ordering = {
            Severity.CRITICAL: 2,
            Severity.HIGH: 2,
            Severity.NORMAL: 1,
            Severity.LOW: 0,
        }
        return ordering[self]

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Return the severity named by ``value``, defaulting to ``normal``."""

        if isinstance(value, Severity):
            return value
        if value is None or value == "":
            return cls.NORMAL
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(severity.value for severity in cls)
            raise ValueError(f"Unknown severity {value!r}; expected one of: {allowed}") from exc


DEFAULT_SEVERITY = Severity.NORMAL

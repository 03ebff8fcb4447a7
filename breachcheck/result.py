"""Rendered results per check, plus the run summary."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Sequence, Tuple

from .breach import Breach
from .severity import DEFAULT_SEVERITY, Severity
from .template.config import BreachTemplate

SEVERITY_ORDER: Sequence[Severity] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.NORMAL,
    Severity.LOW,
)


@dataclass
class CheckResult:
    """Collects the rendered breaches of one check."""

    name: str
    check_type: str = ""
    severity: Severity = DEFAULT_SEVERITY
    breach_template: BreachTemplate = field(default_factory=BreachTemplate)
    breaches: List[Breach] = field(default_factory=list)

    def add_breach(self, breach: Breach) -> None:
        self.breaches.append(breach)

    def get_breach_template(self) -> BreachTemplate:
        return self.breach_template

    @property
    def passed(self) -> bool:
        return not self.breaches

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "type": self.check_type,
            "severity": self.severity.value,
            "passed": self.passed,
            "breaches": [breach.to_dict() for breach in self.breaches],
        }


@dataclass
class Summary:
    """Aggregate breach counts by severity."""

    critical: int = 0
    high: int = 0
    normal: int = 0
    low: int = 0

    def increment(self, severity: Severity) -> None:
        attr = severity.value
        setattr(self, attr, getattr(self, attr) + 1)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.value, getattr(self, severity.value)) for severity in SEVERITY_ORDER]

    @property
    def total(self) -> int:
        return sum(getattr(self, severity.value) for severity in SEVERITY_ORDER)


@dataclass
class RenderResult:
    """Bundle the summary with every check's rendered breaches."""

    summary: Summary = field(default_factory=Summary)
    results: List[CheckResult] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.summary.critical == 0 and self.summary.high == 0

    def add_check_result(self, result: CheckResult) -> None:
        for breach in result.breaches:
            self.summary.increment(breach.severity)
        self.results.append(result)

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "results": [result.to_dict() for result in self.results],
            "passed": self.passed,
        }

    def exit_code(self) -> int:
        priorities = [Severity(name).exit_priority for name, count in self.summary.as_rows() if count]
        return max(priorities, default=0)


def format_summary_table(result: RenderResult) -> str:
    """Create a human-readable summary table for console output."""

    lines: List[str] = []
    lines.append("Check Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in result.summary.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    status = "PASS" if result.passed else "FAIL"
    lines.append(f"Status    : {status}")
    lines.append(f"Breaches  : {result.summary.total}")
    return "\n".join(lines)


def format_breaches(result: RenderResult) -> str:
    """List every check with the canonical string of each rendered breach."""

    lines: List[str] = []
    for check in result.results:
        lines.append(f"{check.name} ({check.check_type or 'unknown'}): {'PASS' if check.passed else 'FAIL'}")
        for breach in check.breaches:
            lines.append(f"  [{breach.severity.value}] {breach}")
    return "\n".join(lines)

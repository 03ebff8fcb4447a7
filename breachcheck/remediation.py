"""Remediation outcome types attached to rendered breaches."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class RemediationStatus(str, Enum):
    """Outcome of a remediation attempt."""

    NO_SUPPORT = "no-support"
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class RemediationResult:
    """Status and messages produced by a remediator."""

    status: Optional[RemediationStatus] = None
    messages: List[str] = field(default_factory=list)

    EXPORTED_FIELDS: ClassVar[Mapping[str, str]] = {"Status": "status", "Messages": "messages"}

    def add_message(self, message: str) -> None:
        self.messages.append(message)

    def is_empty(self) -> bool:
        return self.status is None and not self.messages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value if self.status else "",
            "messages": list(self.messages),
        }


@runtime_checkable
class Remediator(Protocol):
    """Protocol implemented by remediation collaborators."""

    def remediate(self) -> RemediationResult:
        """Attempt to fix the breach and report the outcome."""


def remediator_from_object(candidate: Any) -> Optional[Remediator]:
    """Return ``candidate`` when it can remediate, otherwise ``None``."""

    if candidate is None:
        return None
    if isinstance(candidate, Remediator):
        return candidate
    logger.debug("Ignoring non-remediator object of type %s", type(candidate).__name__)
    return None

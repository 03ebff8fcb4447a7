"""Evaluate a template source without ever failing the caller."""

from __future__ import annotations

import logging
from typing import Any

from ..breach import BreachTemplater, ValueBreach
from .engine import TemplateEngine
from .errors import TemplateCompileError, TemplateExecutionError

logger = logging.getLogger(__name__)

PARSE_FAILURE_LABEL = "unable to parse breach template"
RENDER_FAILURE_LABEL = "unable to render breach template"


class TemplateEvaluator:
    """Compile and execute templates, reporting failures as breaches.

    A broken template never raises: the failure is added to the templater as
    a ``ValueBreach`` and the unrendered source is returned instead.
    """

    def __init__(self, engine: TemplateEngine) -> None:
        self.engine = engine

    def evaluate(self, source: str, context: Any, templater: BreachTemplater) -> str:
        try:
            compiled = self.engine.compile(source)
        except (TemplateCompileError, RecursionError) as exc:
            self._report(templater, PARSE_FAILURE_LABEL, exc)
            return source
        try:
            return compiled.execute(context)
        except (TemplateExecutionError, RecursionError) as exc:
            self._report(templater, RENDER_FAILURE_LABEL, exc)
            return source

    @staticmethod
    def _report(templater: BreachTemplater, label: str, error: Exception) -> None:
        logger.warning("%s: %s", label, error)
        templater.add_breach(ValueBreach(value_label=label, value=str(error)))

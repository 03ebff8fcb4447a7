"""Render breaches through their configured breach template."""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Optional

from .breach import Breach, BreachTemplater, KeyValueBreach, KeyValuesBreach, ValueBreach
from .facts import FactStore
from .remediation import RemediationResult, remediator_from_object
from .template.config import DEFAULT_OUTPUT_FORMAT, BreachTemplate, TemplateContext
from .template.engine import TemplateEngine
from .template.evaluator import TemplateEvaluator
from .template.functions import build_function_library
from .template.resolver import RenderMode, resolve

logger = logging.getLogger(__name__)

LEGACY_FIELDS = {
    ValueBreach: ("value_label", "value"),
    KeyValueBreach: ("key_label", "key", "value_label", "value"),
    KeyValuesBreach: ("key_label", "key", "value_label"),
}


class BreachRenderer:
    """Turn a breach plus its template configuration into a displayable breach.

    The input breach is never modified. Rendering builds a new breach of the
    same shape and adds it to the templater, after any synthetic breaches
    reporting template failures.
    """

    def __init__(self, evaluator: TemplateEvaluator) -> None:
        self.evaluator = evaluator

    @classmethod
    def with_facts(cls, facts: Optional[FactStore] = None) -> "BreachRenderer":
        """Build a renderer whose fact lookups read from ``facts``."""

        return cls(TemplateEvaluator(TemplateEngine(build_function_library(facts))))

    def render(
        self,
        templater: BreachTemplater,
        breach: Breach,
        remediation: Any = None,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
    ) -> None:
        template = templater.get_breach_template() or BreachTemplate()
        resolution = resolve(template, output_format)
        logger.debug(
            "Rendering %s breach of %s in %s mode",
            breach.breach_type.value,
            breach.check_name or "<unnamed>",
            resolution.mode.value,
        )
        changes: Dict[str, Any] = {}
        if resolution.mode is not RenderMode.RAW:
            context = TemplateContext.for_breach(breach, output_format, template.context)
            if resolution.is_enhanced:
                rendered = self.evaluator.evaluate(resolution.source, context, templater)
                changes = self._enhanced_changes(breach, rendered)
            else:
                changes = self._legacy_changes(template, breach, context, templater)
        if isinstance(breach, KeyValuesBreach) and "values" not in changes:
            changes["values"] = list(breach.values)
        changes["remediation_result"] = _copy_result(breach.remediation_result)
        changes["remediator"] = remediator_from_object(remediation)
        templater.add_breach(dataclasses.replace(breach, **changes))

    @staticmethod
    def _enhanced_changes(breach: Breach, rendered: str) -> Dict[str, Any]:
        if isinstance(breach, ValueBreach):
            return {"value_label": "", "value": rendered}
        if isinstance(breach, KeyValueBreach):
            return {"value": rendered}
        return {"values": [rendered]}

    def _legacy_changes(
        self,
        template: BreachTemplate,
        breach: Breach,
        context: TemplateContext,
        templater: BreachTemplater,
    ) -> Dict[str, Any]:
        changes: Dict[str, Any] = {}
        for attr in LEGACY_FIELDS[type(breach)]:
            source = getattr(template, attr)
            if source:
                changes[attr] = self.evaluator.evaluate(source, context, templater)
        return changes


def _copy_result(result: RemediationResult) -> RemediationResult:
    return RemediationResult(status=result.status, messages=list(result.messages))


_default_renderer: Optional[BreachRenderer] = None


def default_renderer() -> BreachRenderer:
    """Return a shared renderer with an empty fact store."""

    global _default_renderer
    if _default_renderer is None:
        _default_renderer = BreachRenderer.with_facts()
    return _default_renderer


def evaluate_template(templater: BreachTemplater, breach: Breach, remediation: Any = None) -> None:
    """Render ``breach`` for the ``pretty`` output format."""

    default_renderer().render(templater, breach, remediation, DEFAULT_OUTPUT_FORMAT)


def evaluate_template_string(templater: BreachTemplater, source: str, breach: Breach) -> str:
    """Evaluate a single template source against ``breach``."""

    context = TemplateContext.for_breach(breach, DEFAULT_OUTPUT_FORMAT)
    return default_renderer().evaluator.evaluate(source, context, templater)

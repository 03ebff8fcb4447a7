"""Choose which configured template source applies to an output format."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .config import DEFAULT_TEMPLATE_KEY, BreachTemplate


class RenderMode(str, Enum):
    RAW = "raw"
    ENHANCED_PER_FORMAT = "enhanced-per-format"
    ENHANCED_SINGLE = "enhanced-single"
    LEGACY_PER_FIELD = "legacy-per-field"


@dataclass(frozen=True)
class Resolution:
    """The selected mode and, for enhanced modes, the template source."""

    mode: RenderMode
    source: str = ""

    @property
    def is_enhanced(self) -> bool:
        return self.mode in (RenderMode.ENHANCED_PER_FORMAT, RenderMode.ENHANCED_SINGLE)


def resolve(template: BreachTemplate, output_format: str) -> Resolution:
    """Resolve ``template`` for ``output_format``; the first match wins.

    1. ``templates[output_format]`` when present and non-empty.
    2. ``templates["default"]`` when non-empty.
    3. ``template`` when non-empty.
    4. The per-field legacy templates, when anything at all is configured.
    5. Otherwise the breach is passed through raw.
    """

    per_format = template.templates.get(output_format, "")
    if per_format:
        return Resolution(RenderMode.ENHANCED_PER_FORMAT, per_format)
    fallback = template.templates.get(DEFAULT_TEMPLATE_KEY, "")
    if fallback:
        return Resolution(RenderMode.ENHANCED_PER_FORMAT, fallback)
    if template.template:
        return Resolution(RenderMode.ENHANCED_SINGLE, template.template)
    if template.is_configured():
        return Resolution(RenderMode.LEGACY_PER_FIELD)
    return Resolution(RenderMode.RAW)

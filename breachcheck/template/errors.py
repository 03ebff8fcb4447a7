"""Errors raised while compiling or executing breach templates."""

from __future__ import annotations


class TemplateError(Exception):
    """Base class for template failures."""


class TemplateCompileError(TemplateError):
    """The template source is malformed."""


class TemplateExecutionError(TemplateError):
    """A well-formed template failed against its data."""

"""Utility helpers for the breach checker."""

from .fileio import read_yaml_file

__all__ = [
    "read_yaml_file",
]

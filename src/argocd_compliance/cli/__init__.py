"""Command-line interface package for the Argo CD linter."""

from .app import build_parser, main, run
from .output import highest_severity, render, summary_line, to_json, to_sarif

__all__ = [
    "build_parser",
    "highest_severity",
    "main",
    "render",
    "run",
    "summary_line",
    "to_json",
    "to_sarif",
]

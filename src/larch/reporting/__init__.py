"""Reporting: diagnostics, message catalog and output formatters."""

from larch.reporting.diagnostic import (
    ConventionViolation,
    Diagnostic,
    MessageCatalog,
    ViolationReporter,
    fill_placeholders,
)
from larch.reporting.formatters import format_json, format_porcelain, format_rich, render_check

__all__ = [
    "ConventionViolation",
    "Diagnostic",
    "MessageCatalog",
    "ViolationReporter",
    "fill_placeholders",
    "format_json",
    "format_porcelain",
    "format_rich",
    "render_check",
]

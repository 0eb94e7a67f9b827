"""
Readiness checks for a practice plan.

Pure and stateless: the same snapshot and context always produce the
same, identically ordered diagnostics.
"""

from .engine import has_blocking_errors, sort_diagnostics, validate
from .models import Diagnostic, PracticeSnapshot, Severity, ValidationContext
from .rules import DEFAULT_RULES, find_consecutive_runs

__all__ = [
    "DEFAULT_RULES",
    "Diagnostic",
    "PracticeSnapshot",
    "Severity",
    "ValidationContext",
    "find_consecutive_runs",
    "has_blocking_errors",
    "sort_diagnostics",
    "validate",
]

"""
The validation pipeline.

validate() runs every rule against the same snapshot and orders the
results for display. It never raises: a rule that blows up is logged
and contributes nothing, so one bad rule cannot hide the others.
"""

import logging
from typing import Iterable, Optional

from .models import Diagnostic, PracticeSnapshot, Severity, ValidationContext
from .rules import DEFAULT_RULES, Rule

logger = logging.getLogger(__name__)


def sort_diagnostics(diagnostics: Iterable[Diagnostic]) -> list[Diagnostic]:
    """Errors, then warnings, then info; ties by message."""
    return sorted(diagnostics, key=lambda d: (d.severity.rank, d.message))


def validate(
    snapshot: PracticeSnapshot,
    context: Optional[ValidationContext] = None,
    rules: Iterable[Rule] = DEFAULT_RULES,
) -> list[Diagnostic]:
    context = context or ValidationContext()
    diagnostics = []

    for rule in rules:
        try:
            diagnostic = rule(snapshot, context)
        except Exception as e:
            logger.error(
                "Validation rule failed",
                extra={
                    "rule": getattr(rule, "__name__", repr(rule)),
                    "practice_id": snapshot.practice.id,
                    "error": str(e),
                },
                exc_info=e,
            )
            continue
        if diagnostic is not None:
            diagnostics.append(diagnostic)

    return sort_diagnostics(diagnostics)


def has_blocking_errors(diagnostics: Iterable[Diagnostic]) -> bool:
    return any(d.severity == Severity.ERROR for d in diagnostics)

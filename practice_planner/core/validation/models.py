"""
Inputs and outputs of the readiness checks.

A PracticeSnapshot is what the planner is looking at; a ValidationContext
carries everything else the rules may consult (club settings, the dog
and handler registries, the current time). Rules that need a piece of
context that is missing simply produce nothing.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..practice.models import Attendance, AttendanceStatus, Dog, Handler, Practice, PracticeSet


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        """Display order: errors first."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


@dataclass(frozen=True)
class Diagnostic:
    """One finding about a practice plan."""
    code: str
    message: str
    severity: Severity
    count: Optional[int] = None
    payload: Optional[Any] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "count": self.count,
            "payload": self.payload,
        }


@dataclass
class PracticeSnapshot:
    """
    A materialized practice: its attendance (virtual Unknown records
    included) and every set at every location.
    """
    practice: Practice
    attendances: list[Attendance] = field(default_factory=list)
    sets: list[PracticeSet] = field(default_factory=list)

    def confirmed_dog_ids(self) -> set[str]:
        return {
            record.dog_id for record in self.attendances
            if record.attending == AttendanceStatus.ATTENDING
        }

    def sets_in_round_order(self) -> list[PracticeSet]:
        return sorted(self.sets, key=lambda s: (s.index, s.location_id, s.id))


@dataclass
class ValidationContext:
    now: Optional[datetime] = None
    dogs: dict[str, Dog] = field(default_factory=dict)
    handlers: dict[str, Handler] = field(default_factory=dict)
    ideal_sets_per_dog: Optional[float] = None
    min_confirmed_dogs: int = 4
    max_months_ahead: int = 3

    def dog_name(self, dog_id: str) -> str:
        dog = self.dogs.get(dog_id)
        return dog.name if dog and dog.name else dog_id

    def handler_name(self, handler_id: str) -> str:
        handler = self.handlers.get(handler_id)
        return handler.full_name if handler and handler.full_name else handler_id

    def is_active_dog(self, dog_id: str) -> bool:
        dog = self.dogs.get(dog_id)
        return dog is not None and dog.is_active

"""
Practice rounds: domain models, structural invariants and the batch enforcer.
"""

from .access import Caller, ensure_practice_access
from .enforcer import PracticeDirectory, SetBatchService, SetStore
from .errors import (
    BusinessRuleError,
    NotFoundError,
    PracticePlanningError,
    ScopeError,
    StructuralViolationError,
)
from .models import (
    Attendance,
    AttendanceStatus,
    Club,
    Dog,
    DogStatus,
    Handler,
    Lane,
    Location,
    Practice,
    PracticeSet,
    PracticeStatus,
    PracticeSummary,
    SetDelta,
    SetDog,
    SetDogAssignment,
    SetRating,
    SetType,
)
from .summary import build_practice_summary, merge_attendances

__all__ = [
    "Attendance",
    "AttendanceStatus",
    "BusinessRuleError",
    "Caller",
    "Club",
    "Dog",
    "DogStatus",
    "Handler",
    "Lane",
    "Location",
    "NotFoundError",
    "Practice",
    "PracticeDirectory",
    "PracticePlanningError",
    "PracticeSet",
    "PracticeStatus",
    "PracticeSummary",
    "ScopeError",
    "SetBatchService",
    "SetDelta",
    "SetDog",
    "SetDogAssignment",
    "SetRating",
    "SetStore",
    "SetType",
    "StructuralViolationError",
    "build_practice_summary",
    "ensure_practice_access",
    "merge_attendances",
]

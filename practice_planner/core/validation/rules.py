"""
Readiness rules for a practice plan.

Each rule looks at the snapshot and context and returns at most one
Diagnostic. Rules are independent of each other and hold no state, so
they can be added, removed or reordered freely; display order is decided
by the engine.

Roster rules (everything that inspects set contents) stay quiet while a
practice has no sets at all: NO_SETS_CONFIGURED already covers that.
"""

import calendar
from collections import defaultdict
from datetime import datetime
from typing import Callable, Optional

from ..practice.models import AttendanceStatus
from .models import Diagnostic, PracticeSnapshot, Severity, ValidationContext

Rule = Callable[[PracticeSnapshot, ValidationContext], Optional[Diagnostic]]


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _plural(count: int, singular: str, plural: Optional[str] = None) -> str:
    return singular if count == 1 else (plural or singular + "s")


def _set_counts(snapshot: PracticeSnapshot) -> dict[str, int]:
    """Number of distinct sets each dog appears in."""
    counts: dict[str, int] = defaultdict(int)
    for practice_set in snapshot.sets:
        for dog_id in set(practice_set.dog_ids):
            counts[dog_id] += 1
    return counts


def _confirmed_active(snapshot: PracticeSnapshot, context: ValidationContext) -> list[str]:
    return sorted(
        dog_id for dog_id in snapshot.confirmed_dog_ids()
        if context.is_active_dog(dog_id)
    )


# ---------------------------------------------------------------------------
# Attendance and timing
# ---------------------------------------------------------------------------

def unconfirmed_attendance(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    unknown = sorted(
        record.dog_id for record in snapshot.attendances
        if record.attending == AttendanceStatus.UNKNOWN
    )
    if not unknown:
        return None
    return Diagnostic(
        code="UNCONFIRMED_ATTENDANCES",
        message="Dogs with unconfirmed attendance",
        severity=Severity.INFO,
        count=len(unknown),
        payload={"dog_ids": unknown},
    )


def practice_timing(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    if context.now is None:
        return None

    scheduled_at = snapshot.practice.scheduled_at
    if scheduled_at < context.now:
        return Diagnostic(
            code="PAST_PRACTICE",
            message="Practice has already happened, you cannot edit it anymore",
            severity=Severity.ERROR,
        )

    months = context.max_months_ahead
    if scheduled_at > _add_months(context.now, months):
        return Diagnostic(
            code="FUTURE_PRACTICE",
            message=f"Practice is scheduled more than {months} {_plural(months, 'month')} in advance",
            severity=Severity.WARNING,
        )
    return None


# ---------------------------------------------------------------------------
# Minimum roster
# ---------------------------------------------------------------------------

def minimum_confirmed_dogs(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    confirmed = len(snapshot.confirmed_dog_ids())
    if confirmed >= context.min_confirmed_dogs:
        return None
    return Diagnostic(
        code="INSUFFICIENT_DOGS",
        message=(
            f"Not enough dogs confirmed for practice "
            f"({confirmed}/{context.min_confirmed_dogs} minimum)"
        ),
        severity=Severity.ERROR,
        count=confirmed,
    )


def sets_configured(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    if snapshot.sets:
        return None
    return Diagnostic(
        code="NO_SETS_CONFIGURED",
        message="No sets have been configured for confirmed dogs",
        severity=Severity.ERROR,
    )


# ---------------------------------------------------------------------------
# Roster rules
# ---------------------------------------------------------------------------

def orphaned_set_attendance(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    confirmed = snapshot.confirmed_dog_ids()
    rounds: dict[str, list[int]] = defaultdict(list)
    for practice_set in snapshot.sets_in_round_order():
        for dog_id in practice_set.dog_ids:
            if dog_id not in confirmed and practice_set.index not in rounds[dog_id]:
                rounds[dog_id].append(practice_set.index)
    if not rounds:
        return None

    orphans = [
        {"dog_id": dog_id, "dog_name": context.dog_name(dog_id), "rounds": rounds[dog_id]}
        for dog_id in sorted(rounds)
    ]
    if len(orphans) == 1:
        only = orphans[0]
        message = (
            f"{only['dog_name']} is in round {', '.join(map(str, only['rounds']))} "
            f"but is not confirmed attending"
        )
    else:
        message = f"{len(orphans)} dogs are in sets but not confirmed attending"
    return Diagnostic(
        code="ORPHANED_SET_DOGS",
        message=message,
        severity=Severity.WARNING,
        count=len(orphans),
        payload=orphans,
    )


def same_handler_in_set(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    if not context.dogs:
        return None

    conflicts = []
    for practice_set in snapshot.sets_in_round_order():
        by_handler: dict[str, list[str]] = defaultdict(list)
        for dog_id in dict.fromkeys(practice_set.dog_ids):
            dog = context.dogs.get(dog_id)
            if dog is not None and dog.owner_id:
                by_handler[dog.owner_id].append(dog_id)
        for handler_id in sorted(by_handler):
            dog_ids = by_handler[handler_id]
            if len(dog_ids) >= 2:
                conflicts.append({
                    "handler_id": handler_id,
                    "handler_name": context.handler_name(handler_id),
                    "dog_ids": dog_ids,
                    "dog_names": [context.dog_name(dog_id) for dog_id in dog_ids],
                    "set_id": practice_set.id,
                    "round": practice_set.index,
                })
    if not conflicts:
        return None

    if len(conflicts) == 1:
        only = conflicts[0]
        message = (
            f"{only['handler_name']} has {' and '.join(only['dog_names'])} "
            f"in round {only['round']}"
        )
    else:
        message = f"{len(conflicts)} sets have more than one dog from the same handler"
    return Diagnostic(
        code="SAME_HANDLER_IN_SET",
        message=message,
        severity=Severity.WARNING,
        count=len(conflicts),
        payload=conflicts,
    )


def find_consecutive_runs(rounds: list[int]) -> list[list[int]]:
    """
    Runs of two or more consecutive round numbers.

    Scans ascending: a streak grows while the next round follows on
    directly, and any gap starts a new candidate.
    """
    runs = []
    streak: list[int] = []
    for round_index in sorted(set(rounds)):
        if streak and round_index == streak[-1] + 1:
            streak.append(round_index)
        else:
            if len(streak) >= 2:
                runs.append(streak)
            streak = [round_index]
    if len(streak) >= 2:
        runs.append(streak)
    return runs


def back_to_back_handler(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    if not context.dogs:
        return None

    rounds_by_handler: dict[str, set[int]] = defaultdict(set)
    for practice_set in snapshot.sets:
        for dog_id in practice_set.dog_ids:
            dog = context.dogs.get(dog_id)
            if dog is not None and dog.owner_id:
                rounds_by_handler[dog.owner_id].add(practice_set.index)

    runs = []
    for handler_id in sorted(rounds_by_handler):
        for run in find_consecutive_runs(sorted(rounds_by_handler[handler_id])):
            runs.append({
                "handler_id": handler_id,
                "handler_name": context.handler_name(handler_id),
                "rounds": run,
            })
    if not runs:
        return None

    if len(runs) == 1:
        only = runs[0]
        message = (
            f"{only['handler_name']} runs back-to-back in rounds "
            f"{', '.join(map(str, only['rounds']))}"
        )
    else:
        message = f"{len(runs)} back-to-back runs for handlers"
    return Diagnostic(
        code="BACK_TO_BACK",
        message=message,
        severity=Severity.INFO,
        count=len(runs),
        payload=runs,
    )


def confirmed_but_unscheduled(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    if not snapshot.sets:
        return None

    counts = _set_counts(snapshot)
    unscheduled = [dog_id for dog_id in _confirmed_active(snapshot, context) if not counts.get(dog_id)]
    if not unscheduled:
        return None

    names = [context.dog_name(dog_id) for dog_id in unscheduled]
    if len(unscheduled) == 1:
        message = f"{names[0]} is confirmed but not scheduled in any set"
    else:
        message = f"{len(unscheduled)} confirmed dogs are not scheduled in any set"
    return Diagnostic(
        code="CONFIRMED_NOT_SCHEDULED",
        message=message,
        severity=Severity.ERROR,
        count=len(unscheduled),
        payload={"dog_ids": unscheduled, "dog_names": names},
    )


def under_quota(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    ideal = context.ideal_sets_per_dog
    if ideal is None or ideal <= 1 or not snapshot.sets:
        return None

    counts = _set_counts(snapshot)
    single = [dog_id for dog_id in _confirmed_active(snapshot, context) if counts.get(dog_id) == 1]
    if not single:
        return None
    return Diagnostic(
        code="UNDER_QUOTA",
        message=(
            f"{len(single)} {_plural(len(single), 'dog')} in only one set "
            f"(ideal is {ideal:g})"
        ),
        severity=Severity.WARNING,
        count=len(single),
        payload={"dog_ids": single, "ideal_sets_per_dog": ideal},
    )


def over_quota(snapshot: PracticeSnapshot, context: ValidationContext) -> Optional[Diagnostic]:
    ideal = context.ideal_sets_per_dog
    if ideal is None or not snapshot.sets:
        return None

    counts = _set_counts(snapshot)
    over = {
        dog_id: counts[dog_id]
        for dog_id in _confirmed_active(snapshot, context)
        if counts.get(dog_id, 0) > ideal
    }
    if not over:
        return None
    return Diagnostic(
        code="OVER_QUOTA",
        message=(
            f"{len(over)} {_plural(len(over), 'dog')} in more sets than the "
            f"ideal of {ideal:g}"
        ),
        severity=Severity.INFO,
        count=len(over),
        payload={"set_counts": over, "ideal_sets_per_dog": ideal},
    )


DEFAULT_RULES: tuple[Rule, ...] = (
    unconfirmed_attendance,
    practice_timing,
    minimum_confirmed_dogs,
    sets_configured,
    orphaned_set_attendance,
    same_handler_in_set,
    back_to_back_handler,
    confirmed_but_unscheduled,
    under_quota,
    over_quota,
)

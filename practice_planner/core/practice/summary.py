"""
Attendance merging and practice summary counts.

Only active dogs count. An active dog with no stored attendance record
gets a virtual Unknown record so every consumer sees the full roster of
candidates.
"""

from typing import Iterable

from .models import (
    Attendance,
    AttendanceStatus,
    Dog,
    Practice,
    PracticeSummary,
)


def merge_attendances(
    practice_id: str,
    records: Iterable[Attendance],
    dogs: Iterable[Dog],
) -> list[Attendance]:
    """Stored records for active dogs plus virtual Unknown records for the rest."""
    active_ids = [dog.id for dog in dogs if dog.is_active]
    active = set(active_ids)

    merged = [record for record in records if record.dog_id in active]
    recorded = {record.dog_id for record in merged}

    for dog_id in active_ids:
        if dog_id not in recorded:
            merged.append(Attendance(practice_id=practice_id, dog_id=dog_id))

    return merged


def build_practice_summary(
    practice: Practice,
    sets_count: int,
    attendances: Iterable[Attendance],
    dogs: Iterable[Dog],
) -> PracticeSummary:
    merged = merge_attendances(practice.id, attendances, dogs)

    def count(status: AttendanceStatus) -> int:
        return sum(1 for record in merged if record.attending == status)

    return PracticeSummary(
        id=practice.id,
        club_id=practice.club_id,
        scheduled_at=practice.scheduled_at,
        status=practice.status,
        is_private=practice.is_private,
        planned_by_id=practice.planned_by_id,
        sets_count=sets_count,
        attending_count=count(AttendanceStatus.ATTENDING),
        not_attending_count=count(AttendanceStatus.NOT_ATTENDING),
        unconfirmed_count=count(AttendanceStatus.UNKNOWN),
    )

"""
Snowflake repository for club data: practices, locations, dogs, handlers,
attendance and memberships.

The planner only reads most of this (clubs are managed elsewhere). The
add_* methods exist for seeding local databases and tests; each one
commits immediately.
"""

import logging
from datetime import datetime
from typing import Optional

from ....core.practice.models import (
    Attendance,
    AttendanceStatus,
    Club,
    Dog,
    DogStatus,
    Handler,
    Location,
    Practice,
    PracticeSet,
    PracticeStatus,
    new_id,
)
from ....core.practice.summary import merge_attendances
from ....core.validation.models import PracticeSnapshot
from .base import Repository, from_timestamp, to_timestamp

logger = logging.getLogger(__name__)


class PracticeRepository(Repository):
    """Read access to everything around a practice's rounds."""

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    def get_practice(self, practice_id: str) -> Optional[Practice]:
        row = self._fetchone("""
            SELECT practice_id, club_id, scheduled_at, status, is_private, planned_by_id
            FROM practices
            WHERE practice_id = %s
        """, (practice_id,))
        if row is None:
            return None
        return Practice(
            id=row[0],
            club_id=row[1],
            scheduled_at=from_timestamp(row[2]),
            status=PracticeStatus(row[3]) if row[3] else PracticeStatus.DRAFT,
            is_private=bool(row[4]),
            planned_by_id=row[5],
        )

    def get_club(self, club_id: str) -> Optional[Club]:
        row = self._fetchone(
            "SELECT club_id, name, ideal_sets_per_dog FROM clubs WHERE club_id = %s",
            (club_id,),
        )
        if row is None:
            return None
        ideal = float(row[2]) if row[2] is not None else Club.ideal_sets_per_dog
        return Club(id=row[0], name=row[1] or "", ideal_sets_per_dog=ideal)

    def get_locations(self, club_id: str) -> dict[str, Location]:
        rows = self._fetchall("""
            SELECT location_id, club_id, name, is_default, is_double_lane
            FROM locations
            WHERE club_id = %s
            ORDER BY location_id
        """, (club_id,))
        return {
            row[0]: Location(
                id=row[0],
                club_id=row[1],
                name=row[2] or "",
                is_default=bool(row[3]),
                is_double_lane=bool(row[4]),
            )
            for row in rows
        }

    def list_dogs(self, club_id: str) -> list[Dog]:
        rows = self._fetchall("""
            SELECT dog_id, club_id, name, owner_id, training_level, status
            FROM dogs
            WHERE club_id = %s
            ORDER BY name, dog_id
        """, (club_id,))
        return [
            Dog(
                id=row[0],
                club_id=row[1],
                name=row[2] or "",
                owner_id=row[3],
                training_level=int(row[4]) if row[4] is not None else 1,
                status=DogStatus(row[5]) if row[5] else DogStatus.ACTIVE,
            )
            for row in rows
        ]

    def list_handlers(self, club_id: str) -> list[Handler]:
        rows = self._fetchall("""
            SELECT handler_id, club_id, given_name, surname
            FROM handlers
            WHERE club_id = %s
            ORDER BY surname, given_name, handler_id
        """, (club_id,))
        return [
            Handler(id=row[0], club_id=row[1], given_name=row[2] or "", surname=row[3] or "")
            for row in rows
        ]

    def list_attendances(self, practice_id: str) -> list[Attendance]:
        """Stored records only; see load_snapshot for the merged view."""
        rows = self._fetchall("""
            SELECT attendance_id, practice_id, dog_id, attending
            FROM practice_attendances
            WHERE practice_id = %s
            ORDER BY dog_id
        """, (practice_id,))
        return [
            Attendance(
                id=row[0],
                practice_id=row[1],
                dog_id=row[2],
                attending=AttendanceStatus(row[3]) if row[3] else AttendanceStatus.UNKNOWN,
            )
            for row in rows
        ]

    def list_user_club_ids(self, user_id: str) -> frozenset[str]:
        rows = self._fetchall(
            "SELECT club_id FROM club_members WHERE user_id = %s", (user_id,)
        )
        return frozenset(row[0] for row in rows)

    def load_snapshot(self, practice: Practice, sets: list[PracticeSet]) -> PracticeSnapshot:
        """Practice plus merged attendance, ready for validation."""
        attendances = merge_attendances(
            practice.id,
            self.list_attendances(practice.id),
            self.list_dogs(practice.club_id),
        )
        return PracticeSnapshot(practice=practice, attendances=attendances, sets=sets)

    # -----------------------------------------------------------------------
    # Seeding
    # -----------------------------------------------------------------------

    def add_club(self, name: str, ideal_sets_per_dog: float = 2, club_id: Optional[str] = None) -> Club:
        club = Club(id=club_id or new_id(), name=name, ideal_sets_per_dog=ideal_sets_per_dog)
        with self.transaction():
            self._execute(
                "INSERT INTO clubs (club_id, name, ideal_sets_per_dog) VALUES (%s, %s, %s)",
                (club.id, club.name, club.ideal_sets_per_dog),
            )
        return club

    def add_member(self, club_id: str, user_id: str) -> None:
        with self.transaction():
            self._execute(
                "INSERT INTO club_members (club_id, user_id) VALUES (%s, %s)",
                (club_id, user_id),
            )

    def add_location(
        self,
        club_id: str,
        name: str,
        is_default: bool = False,
        is_double_lane: bool = False,
        location_id: Optional[str] = None,
    ) -> Location:
        location = Location(
            id=location_id or new_id(),
            club_id=club_id,
            name=name,
            is_default=is_default,
            is_double_lane=is_double_lane,
        )
        with self.transaction():
            self._execute("""
                INSERT INTO locations (location_id, club_id, name, is_default, is_double_lane)
                VALUES (%s, %s, %s, %s, %s)
            """, (location.id, club_id, name, is_default, is_double_lane))
        return location

    def add_handler(
        self,
        club_id: str,
        given_name: str,
        surname: str = "",
        handler_id: Optional[str] = None,
    ) -> Handler:
        handler = Handler(
            id=handler_id or new_id(),
            club_id=club_id,
            given_name=given_name,
            surname=surname,
        )
        with self.transaction():
            self._execute("""
                INSERT INTO handlers (handler_id, club_id, given_name, surname)
                VALUES (%s, %s, %s, %s)
            """, (handler.id, club_id, given_name, surname))
        return handler

    def add_dog(
        self,
        club_id: str,
        name: str,
        owner_id: Optional[str] = None,
        status: DogStatus = DogStatus.ACTIVE,
        training_level: int = 1,
        dog_id: Optional[str] = None,
    ) -> Dog:
        dog = Dog(
            id=dog_id or new_id(),
            club_id=club_id,
            name=name,
            owner_id=owner_id,
            training_level=training_level,
            status=status,
        )
        with self.transaction():
            self._execute("""
                INSERT INTO dogs (dog_id, club_id, name, owner_id, training_level, status)
                VALUES (%s, %s, %s, %s, %s, %s)
            """, (dog.id, club_id, name, owner_id, training_level, status.value))
        return dog

    def add_practice(
        self,
        club_id: str,
        scheduled_at: datetime,
        is_private: bool = False,
        planned_by_id: Optional[str] = None,
        status: PracticeStatus = PracticeStatus.DRAFT,
        practice_id: Optional[str] = None,
    ) -> Practice:
        practice = Practice(
            id=practice_id or new_id(),
            club_id=club_id,
            scheduled_at=scheduled_at,
            status=status,
            is_private=is_private,
            planned_by_id=planned_by_id,
        )
        with self.transaction():
            self._execute("""
                INSERT INTO practices (
                    practice_id, club_id, scheduled_at, status, is_private, planned_by_id
                ) VALUES (%s, %s, %s, %s, %s, %s)
            """, (
                practice.id,
                club_id,
                to_timestamp(scheduled_at),
                status.value,
                is_private,
                planned_by_id,
            ))
        return practice

    def set_attendance(
        self,
        practice_id: str,
        dog_id: str,
        attending: AttendanceStatus,
    ) -> Attendance:
        """Insert or overwrite a dog's attendance record."""
        existing = self._fetchone("""
            SELECT attendance_id FROM practice_attendances
            WHERE practice_id = %s AND dog_id = %s
        """, (practice_id, dog_id))

        with self.transaction():
            if existing:
                attendance_id = existing[0]
                self._execute(
                    "UPDATE practice_attendances SET attending = %s WHERE attendance_id = %s",
                    (attending.value, attendance_id),
                )
            else:
                attendance_id = new_id()
                self._execute("""
                    INSERT INTO practice_attendances (attendance_id, practice_id, dog_id, attending)
                    VALUES (%s, %s, %s, %s)
                """, (attendance_id, practice_id, dog_id, attending.value))

        logger.debug(
            "Attendance recorded",
            extra={"practice_id": practice_id, "dog_id": dog_id, "attending": attending.value},
        )
        return Attendance(
            id=attendance_id,
            practice_id=practice_id,
            dog_id=dog_id,
            attending=attending,
        )

"""
Snowflake repository for practice sets and their rosters.

Implements the SetStore interface the enforcer stages batches through.
Nothing here commits on its own: writes only become visible when the
enclosing transaction() block completes.
"""

import logging
from collections import defaultdict
from typing import Optional

from ....core.practice.models import (
    Lane,
    PracticeSet,
    SetDog,
    SetRating,
    SetType,
    utcnow,
)
from .base import Repository, from_timestamp, placeholders, to_timestamp

logger = logging.getLogger(__name__)

_SET_COLUMNS = """
    set_id, practice_id, location_id, set_index, set_type, type_custom,
    notes, is_warmup, rating, created_at, updated_at
"""


class SetRepository(Repository):
    """
    Repository for sets (rounds) and set_dogs (roster entries).

    Sets always come back with their roster loaded, ordered by round,
    location and id so listings are stable.
    """

    def get_sets_by_ids(self, set_ids: list[str]) -> list[PracticeSet]:
        if not set_ids:
            return []
        rows = self._fetchall(f"""
            SELECT {_SET_COLUMNS}
            FROM sets
            WHERE set_id IN ({placeholders(set_ids)})
            ORDER BY set_index, location_id, set_id
        """, tuple(set_ids))
        return self._build_sets(rows)

    def list_sets(
        self,
        practice_id: str,
        location_id: Optional[str] = None,
    ) -> list[PracticeSet]:
        location_filter = "AND location_id = %s" if location_id else ""
        params = (practice_id, location_id) if location_id else (practice_id,)
        rows = self._fetchall(f"""
            SELECT {_SET_COLUMNS}
            FROM sets
            WHERE practice_id = %s
            {location_filter}
            ORDER BY set_index, location_id, set_id
        """, params)
        return self._build_sets(rows)

    def count_sets(self, practice_id: str) -> int:
        row = self._fetchone(
            "SELECT COUNT(*) FROM sets WHERE practice_id = %s", (practice_id,)
        )
        return int(row[0]) if row else 0

    def insert_set(self, practice_set: PracticeSet) -> None:
        self._execute("""
            INSERT INTO sets (
                set_id, practice_id, location_id, set_index, set_type, type_custom,
                notes, is_warmup, rating, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """, (
            practice_set.id,
            practice_set.practice_id,
            practice_set.location_id,
            practice_set.index,
            practice_set.type.value if practice_set.type else None,
            practice_set.type_custom,
            practice_set.notes,
            bool(practice_set.is_warmup),
            practice_set.rating.value if practice_set.rating else None,
            to_timestamp(practice_set.created_at),
            to_timestamp(practice_set.updated_at),
        ))

    def update_set(self, practice_set: PracticeSet) -> None:
        self._execute("""
            UPDATE sets SET
                practice_id = %s,
                location_id = %s,
                set_index = %s,
                set_type = %s,
                type_custom = %s,
                notes = %s,
                is_warmup = %s,
                rating = %s,
                updated_at = %s
            WHERE set_id = %s
        """, (
            practice_set.practice_id,
            practice_set.location_id,
            practice_set.index,
            practice_set.type.value if practice_set.type else None,
            practice_set.type_custom,
            practice_set.notes,
            bool(practice_set.is_warmup),
            practice_set.rating.value if practice_set.rating else None,
            to_timestamp(practice_set.updated_at),
            practice_set.id,
        ))

    def replace_roster(self, set_id: str, dogs: list[SetDog]) -> None:
        """Drop the old roster and write the new one; no diffing."""
        self._execute("DELETE FROM set_dogs WHERE set_id = %s", (set_id,))
        for entry in dogs:
            self._execute("""
                INSERT INTO set_dogs (set_dog_id, set_id, dog_id, dog_index, lane)
                VALUES (%s, %s, %s, %s, %s)
            """, (
                entry.id,
                set_id,
                entry.dog_id,
                entry.index,
                entry.lane.value if entry.lane else None,
            ))

    def delete_sets(self, set_ids: list[str]) -> None:
        if not set_ids:
            return
        self._execute(
            f"DELETE FROM set_dogs WHERE set_id IN ({placeholders(set_ids)})",
            tuple(set_ids),
        )
        self._execute(
            f"DELETE FROM sets WHERE set_id IN ({placeholders(set_ids)})",
            tuple(set_ids),
        )

    def update_indices(self, new_indices: dict[str, int]) -> None:
        updated_at = to_timestamp(utcnow())
        for set_id, index in new_indices.items():
            self._execute(
                "UPDATE sets SET set_index = %s, updated_at = %s WHERE set_id = %s",
                (index, updated_at, set_id),
            )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _load_rosters(self, set_ids: list[str]) -> dict[str, list[SetDog]]:
        rosters: dict[str, list[SetDog]] = defaultdict(list)
        if not set_ids:
            return rosters
        rows = self._fetchall(f"""
            SELECT set_dog_id, set_id, dog_id, dog_index, lane
            FROM set_dogs
            WHERE set_id IN ({placeholders(set_ids)})
            ORDER BY set_id, lane, dog_index, set_dog_id
        """, tuple(set_ids))
        for row in rows:
            rosters[row[1]].append(SetDog(
                id=row[0],
                set_id=row[1],
                dog_id=row[2],
                index=int(row[3]),
                lane=Lane(row[4]) if row[4] else None,
            ))
        return rosters

    def _build_sets(self, rows: list) -> list[PracticeSet]:
        rosters = self._load_rosters([row[0] for row in rows])
        return [
            PracticeSet(
                id=row[0],
                practice_id=row[1],
                location_id=row[2],
                index=int(row[3]),
                type=SetType(row[4]) if row[4] else None,
                type_custom=row[5],
                notes=row[6],
                is_warmup=bool(row[7]),
                rating=SetRating(row[8]) if row[8] else None,
                created_at=from_timestamp(row[9]),
                updated_at=from_timestamp(row[10]),
                dogs=rosters.get(row[0], []),
            )
            for row in rows
        ]

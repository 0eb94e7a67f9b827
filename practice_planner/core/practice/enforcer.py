"""
Batched set changes with whole-practice invariant enforcement.

SetBatchService is the only way sets and rosters change. Each call:
1. Resolves every target to a single practice and checks access
2. Stages all rows inside one store transaction
3. Re-validates the entire staged practice (see invariants.py)
4. Commits, or rolls everything back on the first violation
5. Publishes change events after commit

Event publishing is fire-and-forget: a failed publish is logged and
never undoes the committed change. Clients that miss an event recover
with a full refetch.

Concurrent batches on the same practice are not serialized here. If two
race on the same round, the one committing second sees the first one's
rows during its own validation and is rejected; its caller retries.
"""

import logging
from contextlib import AbstractContextManager
from typing import Optional, Protocol

from ..events.bus import ChangeEvent, EntityKind, EventBus, EventType, Topic
from .access import Caller, ensure_practice_access
from .errors import BusinessRuleError, NotFoundError, StructuralViolationError
from .invariants import check_practice_structure, compact_rounds, vacated_rounds
from .models import (
    Attendance,
    Dog,
    Location,
    Practice,
    PracticeSet,
    SetDelta,
    SetDog,
    utcnow,
)
from .summary import build_practice_summary

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class SetStore(Protocol):
    """
    Transactional storage for sets and their rosters.

    Reads made inside transaction() must see rows staged earlier in the
    same transaction.
    """

    def transaction(self) -> AbstractContextManager: ...
    def get_sets_by_ids(self, set_ids: list[str]) -> list[PracticeSet]: ...
    def list_sets(self, practice_id: str, location_id: Optional[str] = None) -> list[PracticeSet]: ...
    def insert_set(self, practice_set: PracticeSet) -> None: ...
    def update_set(self, practice_set: PracticeSet) -> None: ...
    def replace_roster(self, set_id: str, dogs: list[SetDog]) -> None: ...
    def delete_sets(self, set_ids: list[str]) -> None: ...
    def update_indices(self, new_indices: dict[str, int]) -> None: ...


class PracticeDirectory(Protocol):
    """Read access to the club data the enforcer consults."""

    def get_practice(self, practice_id: str) -> Optional[Practice]: ...
    def get_locations(self, club_id: str) -> dict[str, Location]: ...
    def list_dogs(self, club_id: str) -> list[Dog]: ...
    def list_attendances(self, practice_id: str) -> list[Attendance]: ...


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class SetBatchService:
    """
    Applies and deletes batches of sets for one practice at a time.

    Stateless beyond its dependencies; create one per request or share
    one, either works.
    """

    def __init__(
        self,
        store: SetStore,
        directory: PracticeDirectory,
        bus: EventBus,
    ) -> None:
        self._store = store
        self._directory = directory
        self._bus = bus

    async def apply_batch(
        self,
        deltas: list[SetDelta],
        caller: Optional[Caller] = None,
    ) -> list[PracticeSet]:
        """
        Create or update sets; return the committed sets in batch order.

        Provided fields overwrite, absent ones stay as they are. A
        provided roster replaces the old one entirely.
        """
        if not deltas:
            return []

        existing = self._load_existing(deltas)
        practice_ids = set()
        for delta in deltas:
            if delta.provides("practice_id") or delta.is_create:
                practice_ids.add(delta.changes.get("practice_id"))
            if not delta.is_create:
                practice_ids.add(existing[delta.id].practice_id)
        practice = self._resolve_practice(practice_ids)
        ensure_practice_access(caller, practice)
        locations = self._directory.get_locations(practice.club_id)

        previous_ratings = {set_id: s.rating for set_id, s in existing.items()}
        created_ids: set[str] = set()
        rated_ids: set[str] = set()
        working: dict[str, PracticeSet] = dict(existing)
        touched: list[str] = []

        with self._store.transaction():
            for delta in deltas:
                staged = self._stage(delta, working, practice, locations)
                if delta.is_create:
                    created_ids.add(staged.id)
                if delta.provides("rating"):
                    rated_ids.add(staged.id)
                if staged.id not in touched:
                    touched.append(staged.id)
                working[staged.id] = staged

            check_practice_structure(self._store.list_sets(practice.id), locations)
            committed = self._store.get_sets_by_ids(touched)

        by_id = {s.id: s for s in committed}
        committed = [by_id[set_id] for set_id in touched if set_id in by_id]

        logger.info(
            "Set batch committed",
            extra={
                "practice_id": practice.id,
                "created": len(created_ids),
                "updated": len(committed) - len(created_ids),
            },
        )

        for practice_set in committed:
            event_type = EventType.CREATED if practice_set.id in created_ids else EventType.UPDATED
            await self._emit_set_event(Topic.PRACTICE_SET_UPDATED, event_type, practice, practice_set)

        for practice_set in committed:
            if practice_set.id in rated_ids and practice_set.rating != previous_ratings.get(practice_set.id):
                await self._emit_set_event(
                    Topic.PRACTICE_SET_RATING_UPDATED, EventType.UPDATED, practice, practice_set
                )

        await self._emit_summary(practice)
        return committed

    async def delete_batch(
        self,
        set_ids: list[str],
        caller: Optional[Caller] = None,
    ) -> bool:
        """
        Delete sets and close any round left empty at every location.

        The set at the default location anchors its round: it can only be
        removed together with the other locations' sets at that round.
        """
        unique_ids = list(dict.fromkeys(set_ids))
        if not unique_ids:
            return True

        targets = self._store.get_sets_by_ids(unique_ids)
        missing = set(unique_ids) - {s.id for s in targets}
        if missing:
            raise NotFoundError(f"Set {sorted(missing)[0]} not found")

        practice = self._resolve_practice({s.practice_id for s in targets})
        ensure_practice_access(caller, practice)
        locations = self._directory.get_locations(practice.club_id)

        before = self._store.list_sets(practice.id)
        self._guard_anchor_rounds(targets, before, set(unique_ids), locations)

        with self._store.transaction():
            self._store.delete_sets(unique_ids)
            remaining = self._store.list_sets(practice.id)
            vacated = vacated_rounds(before, remaining)
            new_indices = compact_rounds(remaining, vacated)
            if new_indices:
                self._store.update_indices(new_indices)
            check_practice_structure(self._store.list_sets(practice.id), locations)
            shifted = self._store.get_sets_by_ids(list(new_indices))

        logger.info(
            "Set batch deleted",
            extra={
                "practice_id": practice.id,
                "deleted": len(unique_ids),
                "vacated_rounds": vacated,
                "shifted": len(shifted),
            },
        )

        for practice_set in targets:
            await self._emit_set_event(Topic.PRACTICE_SET_DELETED, EventType.DELETED, practice, practice_set)
        for practice_set in sorted(shifted, key=lambda s: (s.index, s.location_id, s.id)):
            await self._emit_set_event(Topic.PRACTICE_SET_UPDATED, EventType.UPDATED, practice, practice_set)

        await self._emit_summary(practice)
        return True

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _load_existing(self, deltas: list[SetDelta]) -> dict[str, PracticeSet]:
        wanted = list(dict.fromkeys(d.id for d in deltas if not d.is_create))
        if not wanted:
            return {}
        found = {s.id: s for s in self._store.get_sets_by_ids(wanted)}
        for set_id in wanted:
            if set_id not in found:
                raise NotFoundError(f"Set {set_id} not found")
        return found

    def _resolve_practice(self, practice_ids: set[Optional[str]]) -> Practice:
        if None in practice_ids or "" in practice_ids:
            raise StructuralViolationError("New sets must name a practice_id")
        if len(practice_ids) != 1:
            raise StructuralViolationError(
                f"Batch spans multiple practices: {', '.join(sorted(practice_ids))}"
            )
        practice_id = next(iter(practice_ids))
        practice = self._directory.get_practice(practice_id)
        if practice is None:
            raise NotFoundError(f"Practice {practice_id} not found")
        return practice

    def _stage(
        self,
        delta: SetDelta,
        working: dict[str, PracticeSet],
        practice: Practice,
        locations: dict[str, Location],
    ) -> PracticeSet:
        now = utcnow()

        if delta.is_create:
            for required in ("location_id", "index"):
                if delta.changes.get(required) is None:
                    raise StructuralViolationError(f"New set in practice {practice.id} needs {required}")
            staged = PracticeSet(created_at=now, updated_at=now, **delta.changes)
        else:
            staged = working[delta.id].with_changes(updated_at=now, **delta.changes)

        if staged.location_id not in locations:
            raise NotFoundError(
                f"Location {staged.location_id} not found in club {practice.club_id}"
            )

        if delta.is_create:
            self._store.insert_set(staged)
        else:
            self._store.update_set(staged)

        if delta.dogs is not None:
            roster = [
                SetDog(dog_id=entry.dog_id, index=entry.index, lane=entry.lane, set_id=staged.id)
                for entry in delta.dogs
            ]
            self._store.replace_roster(staged.id, roster)
            staged = staged.with_changes(dogs=roster)

        return staged

    def _guard_anchor_rounds(
        self,
        targets: list[PracticeSet],
        all_sets: list[PracticeSet],
        deleting: set[str],
        locations: dict[str, Location],
    ) -> None:
        for target in targets:
            location = locations.get(target.location_id)
            if location is None or not location.is_default:
                continue
            siblings = [
                s for s in all_sets
                if s.index == target.index
                and s.location_id != target.location_id
                and s.id not in deleting
            ]
            if siblings:
                raise BusinessRuleError(
                    f"Cannot delete round {target.index} at default location "
                    f"{location.name or location.id} while {len(siblings)} set(s) at "
                    f"other locations still use that round"
                )

    async def _emit_set_event(
        self,
        topic: Topic,
        event_type: EventType,
        practice: Practice,
        practice_set: PracticeSet,
    ) -> None:
        await self._publish(topic, ChangeEvent(
            topic=topic,
            entity=EntityKind.PRACTICE_SET,
            event_type=event_type,
            practice_id=practice.id,
            club_id=practice.club_id,
            payload=practice_set.to_dict(),
            is_private=practice.is_private,
            planned_by_id=practice.planned_by_id,
        ))

    async def _emit_summary(self, practice: Practice) -> None:
        try:
            summary = build_practice_summary(
                practice,
                sets_count=len(self._store.list_sets(practice.id)),
                attendances=self._directory.list_attendances(practice.id),
                dogs=self._directory.list_dogs(practice.club_id),
            )
        except Exception as e:
            logger.error(
                "Failed to compute practice summary",
                extra={"practice_id": practice.id, "error": str(e)},
            )
            return

        await self._publish(Topic.PRACTICE_SUMMARY_UPDATED, ChangeEvent(
            topic=Topic.PRACTICE_SUMMARY_UPDATED,
            entity=EntityKind.PRACTICE_SUMMARY,
            event_type=EventType.UPDATED,
            practice_id=practice.id,
            club_id=practice.club_id,
            payload=summary.to_dict(),
            is_private=practice.is_private,
            planned_by_id=practice.planned_by_id,
        ))

    async def _publish(self, topic: Topic, event: ChangeEvent) -> None:
        try:
            await self._bus.publish(topic, event)
        except Exception as e:
            logger.error(
                "Failed to publish change event",
                extra={
                    "topic": topic.value,
                    "practice_id": event.practice_id,
                    "error": str(e),
                },
            )

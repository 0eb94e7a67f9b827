"""
Structural checks and round compaction over a practice snapshot.

All functions here are pure: they take the full list of sets for one
practice (every location) and return findings or new indices. The
enforcer runs them against the staged, uncommitted state so that the
final state is what gets checked, never the individual deltas.

Invariants:
    - Within a (practice, location) pair, no two sets share an index.
    - In a double-lane location every roster entry has a lane.
    - Within a (set, lane) pair, no two roster entries share an index.
    - Round numbers are shared across locations and only compacted when
      no location keeps a set at that round.
"""

from collections import Counter, defaultdict
from typing import Iterable, Mapping

from .errors import StructuralViolationError
from .models import Location, PracticeSet


def find_lane_violations(
    sets: Iterable[PracticeSet],
    locations: Mapping[str, Location],
) -> list[str]:
    """Roster entries without a lane in double-lane locations."""
    messages = []
    for practice_set in sets:
        location = locations.get(practice_set.location_id)
        if location is None or not location.is_double_lane:
            continue
        missing = [entry.dog_id for entry in practice_set.dogs if entry.lane is None]
        if missing:
            messages.append(
                f"Location {location.name or location.id} is double-lane: "
                f"round {practice_set.index} (set {practice_set.id}) has "
                f"{len(missing)} dog(s) without a lane"
            )
    return messages


def find_roster_index_conflicts(sets: Iterable[PracticeSet]) -> list[str]:
    """Two roster entries at the same position in the same lane of a set."""
    messages = []
    for practice_set in sets:
        positions = Counter(
            (entry.lane.value if entry.lane else None, entry.index)
            for entry in practice_set.dogs
        )
        for (lane, index), count in sorted(
            positions.items(), key=lambda item: (item[0][0] or "", item[0][1])
        ):
            if count > 1:
                lane_label = lane or "no lane"
                messages.append(
                    f"Set {practice_set.id} has {count} dogs at position {index} "
                    f"in lane {lane_label}"
                )
    return messages


def find_set_index_conflicts(sets: Iterable[PracticeSet]) -> list[str]:
    """Two sets with the same round number at the same location."""
    by_key: dict[tuple[str, str, int], list[str]] = defaultdict(list)
    for practice_set in sets:
        key = (practice_set.practice_id, practice_set.location_id, practice_set.index)
        by_key[key].append(practice_set.id)

    messages = []
    for (practice_id, location_id, index), set_ids in sorted(by_key.items()):
        if len(set_ids) > 1:
            messages.append(
                f"A set with index {index} already exists in practice "
                f"{practice_id} at location {location_id}"
            )
    return messages


def check_practice_structure(
    sets: list[PracticeSet],
    locations: Mapping[str, Location],
) -> None:
    """
    Validate the whole practice; raise on the first class of violation.

    Checks run in a fixed order: lanes, then roster positions, then
    round numbers.
    """
    for finder in (
        lambda: find_lane_violations(sets, locations),
        lambda: find_roster_index_conflicts(sets),
        lambda: find_set_index_conflicts(sets),
    ):
        messages = finder()
        if messages:
            raise StructuralViolationError("; ".join(messages))


def occupied_rounds(sets: Iterable[PracticeSet]) -> set[int]:
    return {practice_set.index for practice_set in sets}


def vacated_rounds(
    before: Iterable[PracticeSet],
    after: Iterable[PracticeSet],
) -> list[int]:
    """Rounds that had at least one set (any location) before and none after."""
    return sorted(occupied_rounds(before) - occupied_rounds(after))


def compact_rounds(
    sets: Iterable[PracticeSet],
    vacated: list[int],
) -> dict[str, int]:
    """
    New indices for sets that shift down after rounds were vacated.

    Each set moves down once per vacated round below its original index,
    so a set behind several gaps gets a single update to its final
    position. Sets that keep their index are left out of the result.
    """
    if not vacated:
        return {}

    changes = {}
    for practice_set in sets:
        shift = sum(1 for round_index in vacated if round_index < practice_set.index)
        if shift:
            changes[practice_set.id] = practice_set.index - shift
    return changes

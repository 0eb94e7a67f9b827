"""
Unit tests for the structural checks and round compaction.

These are pure functions over a list of sets, so no database is needed.
"""

import pytest

from practice_planner.core.practice.errors import StructuralViolationError
from practice_planner.core.practice.invariants import (
    check_practice_structure,
    compact_rounds,
    find_lane_violations,
    find_roster_index_conflicts,
    find_set_index_conflicts,
    vacated_rounds,
)
from practice_planner.core.practice.models import Location

from conftest import make_set

LOCATIONS = {
    "loc-main": Location(id="loc-main", club_id="club-1", name="Main Ring", is_default=True),
    "loc-lanes": Location(id="loc-lanes", club_id="club-1", name="Lanes", is_double_lane=True),
    "loc-ring": Location(id="loc-ring", club_id="club-1", name="Ring Two"),
}


class TestLaneCompleteness:
    """Double-lane locations need a lane on every roster entry."""

    def test_missing_lane_in_double_lane_location_names_location(self):
        sets = [make_set("s1", 1, location_id="loc-lanes", dogs=[("d1", "Left"), "d2"])]

        messages = find_lane_violations(sets, LOCATIONS)

        assert len(messages) == 1
        assert "Lanes" in messages[0]
        assert "round 1" in messages[0]

    def test_single_lane_location_needs_no_lane(self):
        sets = [make_set("s1", 1, location_id="loc-ring", dogs=["d1", "d2"])]
        assert find_lane_violations(sets, LOCATIONS) == []

    def test_all_lanes_present_passes(self):
        sets = [make_set("s1", 1, location_id="loc-lanes", dogs=[("d1", "Left"), ("d2", "Right")])]
        assert find_lane_violations(sets, LOCATIONS) == []


class TestRosterIndexUniqueness:
    """No two dogs at the same position in the same lane of one set."""

    def test_duplicate_position_in_lane_is_reported(self):
        practice_set = make_set("s1", 1, location_id="loc-lanes", dogs=[("d1", "Left"), ("d2", "Left")])
        for entry in practice_set.dogs:
            entry.index = 1

        messages = find_roster_index_conflicts([practice_set])

        assert messages == ["Set s1 has 2 dogs at position 1 in lane Left"]

    def test_same_position_in_different_lanes_is_fine(self):
        practice_set = make_set("s1", 1, location_id="loc-lanes", dogs=[("d1", "Left"), ("d2", "Right")])
        for entry in practice_set.dogs:
            entry.index = 1

        assert find_roster_index_conflicts([practice_set]) == []


class TestSetIndexUniqueness:
    """Round numbers are unique per (practice, location)."""

    def test_duplicate_round_at_same_location_is_reported(self):
        sets = [make_set("s1", 2), make_set("s2", 2)]

        messages = find_set_index_conflicts(sets)

        assert messages == [
            "A set with index 2 already exists in practice practice-1 at location loc-main"
        ]

    def test_same_round_at_different_locations_is_fine(self):
        sets = [make_set("s1", 2, location_id="loc-main"), make_set("s2", 2, location_id="loc-ring")]
        assert find_set_index_conflicts(sets) == []


class TestCheckPracticeStructure:
    """The combined check raises on the first failing class of violation."""

    def test_valid_practice_passes(self):
        sets = [
            make_set("s1", 1, dogs=["d1", "d2"]),
            make_set("s2", 1, location_id="loc-lanes", dogs=[("d3", "Left"), ("d4", "Right")]),
            make_set("s3", 2, dogs=["d1"]),
        ]
        check_practice_structure(sets, LOCATIONS)

    def test_lane_violation_is_checked_before_index_conflicts(self):
        sets = [
            make_set("s1", 1, location_id="loc-lanes", dogs=["d1"]),
            make_set("s2", 3),
            make_set("s3", 3),
        ]
        with pytest.raises(StructuralViolationError, match="double-lane"):
            check_practice_structure(sets, LOCATIONS)


class TestCompaction:
    """Vacated rounds close up; everything behind them moves down."""

    def test_vacated_rounds_consider_every_location(self):
        before = [make_set("a", 1), make_set("b", 2), make_set("c", 2, location_id="loc-ring")]
        after = [make_set("a", 1), make_set("c", 2, location_id="loc-ring")]

        assert vacated_rounds(before, after) == []

    def test_deleting_middle_round_shifts_later_rounds(self):
        before = [make_set("r1", 1), make_set("r2", 2), make_set("r3", 3), make_set("r4", 4)]
        after = [s for s in before if s.id != "r2"]

        vacated = vacated_rounds(before, after)

        assert vacated == [2]
        assert compact_rounds(after, vacated) == {"r3": 2, "r4": 3}

    def test_several_gaps_produce_one_update_per_set(self):
        remaining = [make_set("r1", 1), make_set("r3", 3), make_set("r5", 5)]

        assert compact_rounds(remaining, [2, 4]) == {"r3": 2, "r5": 3}

    def test_no_vacated_rounds_means_no_changes(self):
        assert compact_rounds([make_set("r1", 1), make_set("r3", 3)], []) == {}

    @pytest.mark.parametrize("deleted_round,total", [(1, 4), (2, 4), (3, 4)])
    def test_rounds_before_the_gap_keep_their_index(self, deleted_round, total):
        before = [make_set(f"r{i}", i) for i in range(1, total + 1)]
        after = [s for s in before if s.index != deleted_round]

        changes = compact_rounds(after, vacated_rounds(before, after))

        for practice_set in after:
            expected = practice_set.index - 1 if practice_set.index > deleted_round else practice_set.index
            assert changes.get(practice_set.id, practice_set.index) == expected

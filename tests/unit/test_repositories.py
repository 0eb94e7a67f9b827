"""
Tests for the Snowflake repositories, run against the SQLite-backed mock.
"""

import pytest

from practice_planner.core.practice.models import AttendanceStatus, DogStatus, Lane, SetDog
from practice_planner.infrastructure.snowflake import ensure_schema

from conftest import MEMBER_ID, OUTSIDER_ID, make_set


class TestTransaction:
    def test_commit_keeps_rows(self, set_repo, club):
        with set_repo.transaction():
            set_repo.insert_set(make_set("s1", 1))

        assert [s.id for s in set_repo.list_sets("practice-1")] == ["s1"]

    def test_exception_rolls_back_and_propagates(self, set_repo, club):
        with pytest.raises(RuntimeError, match="boom"):
            with set_repo.transaction():
                set_repo.insert_set(make_set("s1", 1))
                raise RuntimeError("boom")

        assert set_repo.list_sets("practice-1") == []

    def test_staged_rows_are_visible_inside_the_transaction(self, set_repo, club):
        with set_repo.transaction():
            set_repo.insert_set(make_set("s1", 1))
            assert set_repo.count_sets("practice-1") == 1


class TestSetRepository:
    def test_list_orders_by_round_then_location(self, set_repo, club):
        with set_repo.transaction():
            set_repo.insert_set(make_set("b", 2, location_id="loc-main"))
            set_repo.insert_set(make_set("a", 1, location_id="loc-ring"))
            set_repo.insert_set(make_set("c", 1, location_id="loc-main"))

        assert [s.id for s in set_repo.list_sets("practice-1")] == ["c", "a", "b"]
        assert [s.id for s in set_repo.list_sets("practice-1", location_id="loc-main")] == ["c", "b"]

    def test_roster_replacement_is_wholesale(self, set_repo, club):
        with set_repo.transaction():
            set_repo.insert_set(make_set("s1", 1, location_id="loc-lanes"))
            set_repo.replace_roster("s1", [
                SetDog(dog_id="d1", index=1, lane=Lane.LEFT, set_id="s1"),
                SetDog(dog_id="d2", index=1, lane=Lane.RIGHT, set_id="s1"),
            ])
        with set_repo.transaction():
            set_repo.replace_roster("s1", [SetDog(dog_id="d3", index=1, lane=Lane.LEFT, set_id="s1")])

        (stored,) = set_repo.get_sets_by_ids(["s1"])
        assert stored.dog_ids == ["d3"]
        assert stored.dogs[0].lane == Lane.LEFT

    def test_delete_removes_roster_rows_too(self, set_repo, connection, club):
        with set_repo.transaction():
            set_repo.insert_set(make_set("s1", 1))
            set_repo.replace_roster("s1", [SetDog(dog_id="d1", index=1, set_id="s1")])
        with set_repo.transaction():
            set_repo.delete_sets(["s1"])

        cursor = connection.cursor()
        cursor.execute("SELECT COUNT(*) FROM set_dogs WHERE set_id = %s", ("s1",))
        assert cursor.fetchone()[0] == 0

    def test_update_indices(self, set_repo, club):
        with set_repo.transaction():
            set_repo.insert_set(make_set("s1", 3))
        with set_repo.transaction():
            set_repo.update_indices({"s1": 2})

        assert set_repo.get_sets_by_ids(["s1"])[0].index == 2

    def test_missing_ids_are_skipped(self, set_repo, club):
        assert set_repo.get_sets_by_ids(["nope"]) == []


class TestPracticeRepository:
    def test_memberships(self, practices, club):
        assert practices.list_user_club_ids(MEMBER_ID) == frozenset({"club-1"})
        assert practices.list_user_club_ids(OUTSIDER_ID) == frozenset()

    def test_locations_are_keyed_by_id(self, practices, club):
        locations = practices.get_locations("club-1")

        assert set(locations) == {"loc-main", "loc-lanes", "loc-ring"}
        assert locations["loc-main"].is_default
        assert locations["loc-lanes"].is_double_lane

    def test_attendance_is_upserted(self, practices, club):
        practices.add_dog("club-1", "Pixel", dog_id="d1")
        practices.set_attendance("practice-1", "d1", AttendanceStatus.ATTENDING)
        practices.set_attendance("practice-1", "d1", AttendanceStatus.NOT_ATTENDING)

        records = practices.list_attendances("practice-1")

        assert len(records) == 1
        assert records[0].attending == AttendanceStatus.NOT_ATTENDING

    def test_snapshot_merges_missing_attendance(self, practices, club):
        practices.add_dog("club-1", "Pixel", dog_id="d1")
        practices.add_dog("club-1", "Bolt", dog_id="d2")
        practices.add_dog("club-1", "Retired", status=DogStatus.INACTIVE, dog_id="d3")
        practices.set_attendance("practice-1", "d1", AttendanceStatus.ATTENDING)

        snapshot = practices.load_snapshot(club.practice, sets=[])

        by_dog = {record.dog_id: record for record in snapshot.attendances}
        assert set(by_dog) == {"d1", "d2"}
        assert by_dog["d2"].attending == AttendanceStatus.UNKNOWN
        assert snapshot.confirmed_dog_ids() == {"d1"}

    def test_club_and_practice_round_trip(self, practices, club):
        assert practices.get_club("club-1").ideal_sets_per_dog == 2
        practice = practices.get_practice("practice-1")
        assert practice.club_id == "club-1"
        assert practice.scheduled_at == club.practice.scheduled_at

    def test_unknown_practice_is_none(self, practices, club):
        assert practices.get_practice("missing") is None


class TestSchema:
    def test_ensure_schema_is_idempotent(self, connection, practices, club):
        ensure_schema(connection)

        assert practices.get_practice("practice-1") is not None

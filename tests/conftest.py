"""
Shared fixtures.

Persistence fixtures run against the mock Snowflake connection (an
in-memory SQLite database with the real schema), so commits and
rollbacks in these tests are real.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import pytest

from practice_planner.core.events.bus import InMemoryEventBus, Topic
from practice_planner.core.practice.access import Caller
from practice_planner.core.practice.enforcer import SetBatchService
from practice_planner.core.practice.models import (
    Lane,
    Location,
    Practice,
    PracticeSet,
    SetDelta,
    SetDog,
    SetDogAssignment,
    utcnow,
)
from practice_planner.infrastructure.snowflake.client import MockSnowflakeConnection
from practice_planner.infrastructure.snowflake.repositories import (
    PracticeRepository,
    SetRepository,
)

PLANNER_ID = "planner-1"
MEMBER_ID = "member-2"
OUTSIDER_ID = "outsider-3"


@dataclass
class ClubFixture:
    """A club with a default ring, a double-lane location and a second ring."""
    club_id: str
    main: Location
    lanes: Location
    ring: Location
    practice: Practice


@pytest.fixture
def connection():
    conn = MockSnowflakeConnection()
    yield conn
    conn.close()


@pytest.fixture
def practices(connection) -> PracticeRepository:
    return PracticeRepository(connection)


@pytest.fixture
def set_repo(connection) -> SetRepository:
    return SetRepository(connection)


@pytest.fixture
def bus() -> InMemoryEventBus:
    return InMemoryEventBus(max_queue_size=100)


@pytest.fixture
def club(practices) -> ClubFixture:
    club = practices.add_club("Test Club", ideal_sets_per_dog=2, club_id="club-1")
    practices.add_member(club.id, PLANNER_ID)
    practices.add_member(club.id, MEMBER_ID)
    main = practices.add_location(club.id, "Main Ring", is_default=True, location_id="loc-main")
    lanes = practices.add_location(club.id, "Lanes", is_double_lane=True, location_id="loc-lanes")
    ring = practices.add_location(club.id, "Ring Two", location_id="loc-ring")
    practice = practices.add_practice(
        club.id,
        scheduled_at=utcnow() + timedelta(days=7),
        planned_by_id=PLANNER_ID,
        practice_id="practice-1",
    )
    return ClubFixture(club_id=club.id, main=main, lanes=lanes, ring=ring, practice=practice)


@pytest.fixture
def planner(club) -> Caller:
    return Caller(user_id=PLANNER_ID, club_ids=frozenset({club.club_id}))


@pytest.fixture
def service(set_repo, practices, bus) -> SetBatchService:
    return SetBatchService(store=set_repo, directory=practices, bus=bus)


@pytest.fixture
def all_topics_subscription(bus):
    subscription = bus.subscribe(list(Topic))
    yield subscription
    subscription.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def create_delta(
    practice_id: str,
    location_id: str,
    index: int,
    dogs: Optional[list[tuple]] = None,
    **changes,
) -> SetDelta:
    """A create delta; `dogs` entries are (dog_id, index) or (dog_id, index, lane)."""
    roster = None
    if dogs is not None:
        roster = [
            SetDogAssignment(dog_id=entry[0], index=entry[1], lane=entry[2] if len(entry) > 2 else None)
            for entry in dogs
        ]
    return SetDelta(
        changes={"practice_id": practice_id, "location_id": location_id, "index": index, **changes},
        dogs=roster,
    )


def drain(subscription) -> list:
    events = []
    while True:
        event = subscription.get_nowait()
        if event is None:
            return events
        events.append(event)


def make_set(
    set_id: str,
    index: int,
    location_id: str = "loc-main",
    practice_id: str = "practice-1",
    dogs: Optional[list] = None,
) -> PracticeSet:
    roster = []
    for position, entry in enumerate(dogs or [], start=1):
        if isinstance(entry, tuple):
            dog_id, lane = entry
        else:
            dog_id, lane = entry, None
        roster.append(SetDog(dog_id=dog_id, index=position, lane=Lane(lane) if lane else None, set_id=set_id))
    return PracticeSet(
        id=set_id,
        practice_id=practice_id,
        location_id=location_id,
        index=index,
        dogs=roster,
    )

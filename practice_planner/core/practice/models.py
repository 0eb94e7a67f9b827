"""
Domain models for practice planning.

These models represent the core business concepts: a practice, the rounds
("sets") run during it and the dogs assigned to each round. They have no
dependencies on external frameworks, databases, or APIs.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Lane(Enum):
    """Sub-division of a double-lane location."""
    LEFT = "Left"
    RIGHT = "Right"


class AttendanceStatus(Enum):
    ATTENDING = "Attending"
    NOT_ATTENDING = "NotAttending"
    UNKNOWN = "Unknown"


class PracticeStatus(Enum):
    DRAFT = "Draft"
    READY = "Ready"


class DogStatus(Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class SetRating(Enum):
    """How a round went, recorded after the practice."""
    GOOD = "Good"
    NEUTRAL = "Neutral"
    BAD = "Bad"


class SetType(Enum):
    """The kind of exercise run during a round."""
    AROUND_THE_WORLD = "AroundTheWorld"
    BOX_WORK = "BoxWork"
    CUSTOM = "Custom"  # Described by type_custom
    FULL_RUNS = "FullRuns"
    POWER_JUMPING = "PowerJumping"
    RESTRAINTS = "Restraints"
    REVERSE_SNAPOFFS = "ReverseSnapoffs"
    SNAPOFFS = "Snapoffs"
    TWO_JUMPS_FLYBALL = "TwoJumpsFlyball"

    @property
    def display_name(self) -> str:
        return SET_TYPE_DISPLAY_NAMES[self]


SET_TYPE_DISPLAY_NAMES = {
    SetType.AROUND_THE_WORLD: "Around the World",
    SetType.BOX_WORK: "Box Work",
    SetType.CUSTOM: "Custom",
    SetType.FULL_RUNS: "Full Runs",
    SetType.POWER_JUMPING: "Power Jumping",
    SetType.RESTRAINTS: "Restraints",
    SetType.REVERSE_SNAPOFFS: "Reverse Snap-offs",
    SetType.SNAPOFFS: "Snap-offs",
    SetType.TWO_JUMPS_FLYBALL: "Two Jumps Flyball",
}


@dataclass(frozen=True)
class Location:
    """
    A place where rounds are run.

    Frozen because locations are club configuration, read-only from the
    planner's point of view.
    """
    id: str
    club_id: str
    name: str = ""
    is_default: bool = False
    is_double_lane: bool = False


@dataclass
class Club:
    id: str
    name: str = ""
    ideal_sets_per_dog: float = 2


@dataclass
class Handler:
    id: str
    club_id: str
    given_name: str = ""
    surname: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.given_name} {self.surname}".strip()


@dataclass
class Dog:
    id: str
    club_id: str
    name: str = ""
    owner_id: Optional[str] = None  # The dog's handler
    training_level: int = 1
    status: DogStatus = DogStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == DogStatus.ACTIVE


@dataclass
class Practice:
    """
    A scheduled practice session.

    This is the aggregate root for planning: it owns the attendance
    records and the rounds. Rounds are only ever changed through the
    batch operations in the enforcer.
    """
    id: str = field(default_factory=new_id)
    club_id: str = ""
    scheduled_at: datetime = field(default_factory=utcnow)
    status: PracticeStatus = PracticeStatus.DRAFT
    is_private: bool = False
    planned_by_id: Optional[str] = None


@dataclass
class Attendance:
    """
    Whether a dog is coming to a practice.

    Records without an id are virtual: they are synthesized for active
    dogs that have no stored record yet.
    """
    practice_id: str
    dog_id: str
    attending: AttendanceStatus = AttendanceStatus.UNKNOWN
    id: Optional[str] = None

    @property
    def is_virtual(self) -> bool:
        return self.id is None


@dataclass
class SetDog:
    """One roster entry: a dog's position within its lane for a round."""
    dog_id: str
    index: int
    lane: Optional[Lane] = None
    id: str = field(default_factory=new_id)
    set_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "set_id": self.set_id,
            "dog_id": self.dog_id,
            "index": self.index,
            "lane": self.lane.value if self.lane else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SetDog":
        return cls(
            id=data.get("id") or new_id(),
            set_id=data.get("set_id"),
            dog_id=data["dog_id"],
            index=int(data["index"]),
            lane=Lane(data["lane"]) if data.get("lane") else None,
        )


@dataclass
class PracticeSet:
    """
    A round within a practice, run at one location.

    The index is the round number. It is shared across locations, so
    round 3 at the main ring and round 3 in the lanes run at the same
    time.
    """
    id: str = field(default_factory=new_id)
    practice_id: str = ""
    location_id: str = ""
    index: int = 1
    type: Optional[SetType] = None
    type_custom: Optional[str] = None
    is_warmup: bool = False
    rating: Optional[SetRating] = None
    notes: Optional[str] = None
    dogs: list[SetDog] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def dog_ids(self) -> list[str]:
        return [entry.dog_id for entry in self.dogs]

    def with_changes(self, **changes: Any) -> "PracticeSet":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "practice_id": self.practice_id,
            "location_id": self.location_id,
            "index": self.index,
            "type": self.type.value if self.type else None,
            "type_custom": self.type_custom,
            "is_warmup": self.is_warmup,
            "rating": self.rating.value if self.rating else None,
            "notes": self.notes,
            "dogs": [entry.to_dict() for entry in self.dogs],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PracticeSet":
        return cls(
            id=data["id"],
            practice_id=data.get("practice_id", ""),
            location_id=data.get("location_id", ""),
            index=int(data.get("index", 1)),
            type=SetType(data["type"]) if data.get("type") else None,
            type_custom=data.get("type_custom"),
            is_warmup=bool(data.get("is_warmup", False)),
            rating=SetRating(data["rating"]) if data.get("rating") else None,
            notes=data.get("notes"),
            dogs=[SetDog.from_dict(entry) for entry in data.get("dogs") or []],
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


# Fields a batch delta may overwrite on a set. The roster is handled
# separately because it is replaced wholesale.
MUTABLE_SET_FIELDS = (
    "practice_id",
    "location_id",
    "index",
    "type",
    "type_custom",
    "notes",
    "is_warmup",
    "rating",
)


@dataclass
class SetDogAssignment:
    """A requested roster entry in a batch delta."""
    dog_id: str
    index: int
    lane: Optional[Lane] = None


@dataclass
class SetDelta:
    """
    A requested change to one set.

    No id means create. `changes` only holds the fields the caller
    actually sent, so an explicit None (e.g. clearing a rating) is kept
    apart from "leave unchanged". A non-None `dogs` replaces the whole
    roster.
    """
    id: Optional[str] = None
    changes: dict[str, Any] = field(default_factory=dict)
    dogs: Optional[list[SetDogAssignment]] = None

    def __post_init__(self) -> None:
        unknown = set(self.changes) - set(MUTABLE_SET_FIELDS)
        if unknown:
            raise ValueError(f"Unknown set fields: {', '.join(sorted(unknown))}")

    @property
    def is_create(self) -> bool:
        return self.id is None

    def provides(self, name: str) -> bool:
        return name in self.changes


@dataclass
class PracticeSummary:
    """Counts shown on practice lists, recomputed after every change."""
    id: str
    club_id: str
    scheduled_at: datetime
    status: PracticeStatus
    is_private: bool
    planned_by_id: Optional[str]
    sets_count: int = 0
    attending_count: int = 0
    not_attending_count: int = 0
    unconfirmed_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "club_id": self.club_id,
            "scheduled_at": self.scheduled_at.isoformat(),
            "status": self.status.value,
            "is_private": self.is_private,
            "planned_by_id": self.planned_by_id,
            "sets_count": self.sets_count,
            "attending_count": self.attending_count,
            "not_attending_count": self.not_attending_count,
            "unconfirmed_count": self.unconfirmed_count,
        }


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(value)
    return utcnow()

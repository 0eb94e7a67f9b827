"""
Change propagation: topics, event envelopes, the bus and delivery filters.
"""

from .bus import (
    ChangeEvent,
    EntityKind,
    EventBus,
    EventType,
    InMemoryEventBus,
    Subscription,
    Topic,
)
from .filters import CLUB_TOPICS, PRACTICE_TOPICS, can_receive, club_filter, practice_filter

__all__ = [
    "CLUB_TOPICS",
    "ChangeEvent",
    "EntityKind",
    "EventBus",
    "EventType",
    "InMemoryEventBus",
    "PRACTICE_TOPICS",
    "Subscription",
    "Topic",
    "can_receive",
    "club_filter",
    "practice_filter",
]

"""
Change propagation bus.

Committed changes are published as ChangeEvent envelopes on a topic
(entity kind x lifecycle stage). Live subscribers each get their own
bounded queue and a predicate deciding which events they may see.

Guarantees:
    - At-most-once delivery per live subscription. A full queue drops
      the event and logs it; the client recovers with a full refetch.
    - Events for one entity reach a subscriber in publish order (one
      FIFO queue per subscription). Nothing is promised across entities.
    - No durability: nothing is kept for subscribers that are not
      connected at publish time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    PRACTICE_SET = "PracticeSet"
    PRACTICE_SUMMARY = "PracticeSummary"


class EventType(Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


class Topic(Enum):
    PRACTICE_SET_UPDATED = "PRACTICE_SET_UPDATED"
    PRACTICE_SET_DELETED = "PRACTICE_SET_DELETED"
    PRACTICE_SET_RATING_UPDATED = "PRACTICE_SET_RATING_UPDATED"
    PRACTICE_SUMMARY_UPDATED = "PRACTICE_SUMMARY_UPDATED"


@dataclass(frozen=True)
class ChangeEvent:
    """
    One committed change, as delivered to subscribers.

    The practice's club, privacy flag and planner travel with the event
    so delivery can be filtered without a database lookup.
    """
    topic: Topic
    entity: EntityKind
    event_type: EventType
    practice_id: str
    club_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    is_private: bool = False
    planned_by_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic.value,
            "entity": self.entity.value,
            "event_type": self.event_type.value,
            "practice_id": self.practice_id,
            "club_id": self.club_id,
            "payload": self.payload,
        }


EventPredicate = Callable[[ChangeEvent], bool]


class EventBus(Protocol):
    """
    Interface for publishing and subscribing to change events.

    The enforcer only needs publish(); the API layer only needs
    subscribe(). Tests use InMemoryEventBus directly.
    """

    async def publish(self, topic: Topic, event: ChangeEvent) -> None: ...

    def subscribe(
        self,
        topics: Iterable[Topic],
        predicate: Optional[EventPredicate] = None,
    ) -> "Subscription": ...

    def subscriber_count(self, topic: Optional[Topic] = None) -> int: ...


class Subscription:
    """A live consumer of events. Iterate it, and close it when done."""

    def __init__(
        self,
        bus: "InMemoryEventBus",
        topics: frozenset[Topic],
        predicate: Optional[EventPredicate],
        max_queue_size: int,
    ) -> None:
        self._bus = bus
        self.topics = topics
        self._predicate = predicate
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self.closed = False
        self.dropped = 0

    def wants(self, event: ChangeEvent) -> bool:
        if self.closed:
            return False
        if self._predicate is None:
            return True
        return self._predicate(event)

    def offer(self, event: ChangeEvent) -> bool:
        """Queue an event without waiting. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Subscriber queue full, dropping event",
                extra={
                    "topic": event.topic.value,
                    "practice_id": event.practice_id,
                    "dropped": self.dropped,
                },
            )
            return False

    async def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or None if the timeout passes first."""
        if timeout is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def get_nowait(self) -> Optional[ChangeEvent]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._bus._remove(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self._queue.get()


class InMemoryEventBus:
    """
    Process-local event bus.

    Fine for a single API process. Running several processes would need
    a shared broker behind the same interface.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._subscriptions: dict[Topic, set[Subscription]] = {}

    def subscribe(
        self,
        topics: Iterable[Topic],
        predicate: Optional[EventPredicate] = None,
    ) -> Subscription:
        topic_set = frozenset(topics)
        subscription = Subscription(self, topic_set, predicate, self._max_queue_size)
        for topic in topic_set:
            self._subscriptions.setdefault(topic, set()).add(subscription)

        logger.debug(
            "Subscriber registered",
            extra={"topics": sorted(topic.value for topic in topic_set)},
        )
        return subscription

    async def publish(self, topic: Topic, event: ChangeEvent) -> None:
        subscribers = list(self._subscriptions.get(topic, ()))
        delivered = 0
        for subscription in subscribers:
            if subscription.wants(event) and subscription.offer(event):
                delivered += 1

        logger.debug(
            "Event published",
            extra={
                "topic": topic.value,
                "practice_id": event.practice_id,
                "event_type": event.event_type.value,
                "delivered": delivered,
            },
        )

    def subscriber_count(self, topic: Optional[Topic] = None) -> int:
        if topic is not None:
            return len(self._subscriptions.get(topic, ()))
        return len({sub for subs in self._subscriptions.values() for sub in subs})

    def _remove(self, subscription: Subscription) -> None:
        for topic in subscription.topics:
            subscribers = self._subscriptions.get(topic)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._subscriptions[topic]

"""
Subscription scopes and delivery filters.

A viewer subscribes either to one practice (its rounds) or to a club
(practice summaries). Either way an event is only delivered if the
viewer could read the practice it belongs to.
"""

from ..practice.access import Caller
from .bus import ChangeEvent, EventPredicate, Topic

PRACTICE_TOPICS = (
    Topic.PRACTICE_SET_UPDATED,
    Topic.PRACTICE_SET_DELETED,
    Topic.PRACTICE_SET_RATING_UPDATED,
)

CLUB_TOPICS = (Topic.PRACTICE_SUMMARY_UPDATED,)


def can_receive(caller: Caller, event: ChangeEvent) -> bool:
    return caller.can_access(
        event.club_id,
        is_private=event.is_private,
        planned_by_id=event.planned_by_id,
    )


def practice_filter(practice_id: str, caller: Caller) -> EventPredicate:
    def predicate(event: ChangeEvent) -> bool:
        return event.practice_id == practice_id and can_receive(caller, event)

    return predicate


def club_filter(club_id: str, caller: Caller) -> EventPredicate:
    def predicate(event: ChangeEvent) -> bool:
        return event.club_id == club_id and can_receive(caller, event)

    return predicate

"""
Who may see and change a practice.

Authentication happens outside this service; by the time a request gets
here we know the user's id and the clubs they belong to. The same rule
guards writes and live event delivery: club members only, and for a
private practice only its planner.
"""

from dataclasses import dataclass, field
from typing import Optional

from .errors import ScopeError
from .models import Practice


@dataclass(frozen=True)
class Caller:
    user_id: str
    club_ids: frozenset[str] = field(default_factory=frozenset)

    def can_access(
        self,
        club_id: str,
        is_private: bool = False,
        planned_by_id: Optional[str] = None,
    ) -> bool:
        if club_id not in self.club_ids:
            return False
        if is_private and planned_by_id != self.user_id:
            return False
        return True

    def can_access_practice(self, practice: Practice) -> bool:
        return self.can_access(
            practice.club_id,
            is_private=practice.is_private,
            planned_by_id=practice.planned_by_id,
        )


def ensure_practice_access(caller: Optional[Caller], practice: Practice) -> None:
    """
    Raise ScopeError unless the caller may work on this practice.

    A None caller is an internal call (scripts, tests) and is trusted.
    """
    if caller is None:
        return
    if practice.club_id not in caller.club_ids:
        raise ScopeError(f"Practice {practice.id} is outside your club")
    if not caller.can_access_practice(practice):
        raise ScopeError(f"Practice {practice.id} is private to its planner")

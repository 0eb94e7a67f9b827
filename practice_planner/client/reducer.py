"""
Client-side set list state.

One ordered list of sets per practice, changed only through typed
actions. reduce() is a pure function; SetListStore runs it behind a
single queue so that load results, confirmed edits and pushed events
never interleave mid-update.

The store never guesses. Local edits go to the server first and only
the confirmed result is dispatched, so a pushed event for the same set
simply overwrites it with server truth (last write wins, per field).
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Union

from ..core.practice.models import PracticeSet, utcnow

logger = logging.getLogger(__name__)

# Fields an Update may merge; identity and timestamps are the store's business.
_SET_FIELDS = frozenset(f.name for f in dataclasses.fields(PracticeSet)) - {"id", "created_at", "updated_at"}


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReplaceAll:
    """Full load: the server's list replaces whatever we had."""
    sets: tuple[PracticeSet, ...]


@dataclass(frozen=True)
class Add:
    """Insert a set, or overwrite the one with the same id."""
    practice_set: PracticeSet


@dataclass(frozen=True)
class Update:
    """Merge fields into a known set and re-stamp its modification time."""
    set_id: str
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = set(self.fields) - _SET_FIELDS
        if unknown:
            raise ValueError(f"Unknown set fields: {', '.join(sorted(unknown))}")


@dataclass(frozen=True)
class Remove:
    set_id: str


Action = Union[ReplaceAll, Add, Update, Remove]


def sort_sets(sets: Iterable[PracticeSet]) -> list[PracticeSet]:
    """Round order; location and id break ties so the order is total."""
    return sorted(sets, key=lambda s: (s.index, s.location_id, s.id))


def reduce(
    state: list[PracticeSet],
    action: Action,
    now: Optional[datetime] = None,
) -> list[PracticeSet]:
    """Return the next state. Never mutates `state`."""
    if isinstance(action, ReplaceAll):
        return sort_sets(action.sets)

    if isinstance(action, Add):
        incoming = action.practice_set
        rest = [s for s in state if s.id != incoming.id]
        return sort_sets([*rest, incoming])

    if isinstance(action, Update):
        stamp = now or utcnow()
        return sort_sets(
            s.with_changes(**action.fields, updated_at=stamp) if s.id == action.set_id else s
            for s in state
        )

    if isinstance(action, Remove):
        return [s for s in state if s.id != action.set_id]

    raise TypeError(f"Unknown action: {action!r}")


def action_for_event(envelope: dict[str, Any]) -> Optional[Action]:
    """
    Translate a pushed change envelope into an action.

    Created and updated sets are upserted, so an update for a set we have
    never seen behaves as an add. A delete for an unknown set reduces to
    the same state. Other entities produce no action.
    """
    if envelope.get("entity") != "PracticeSet":
        return None

    payload = envelope.get("payload") or {}
    if envelope.get("event_type") == "DELETED":
        return Remove(payload["id"])
    return Add(PracticeSet.from_dict(payload))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

_STOP = object()

Listener = Callable[[list[PracticeSet]], None]


class SetListStore:
    """
    Single-writer owner of one practice's set list.

    Every change goes through dispatch(), which queues the action and
    resolves once it has been applied. Only the store's own task ever
    touches the list.

    Usage:
        async with SetListStore(practice_id) as store:
            await store.dispatch(ReplaceAll(tuple(sets)))
    """

    def __init__(
        self,
        practice_id: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.practice_id = practice_id
        self._clock = clock
        self._sets: list[PracticeSet] = []
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._listeners: list[Listener] = []

    @property
    def sets(self) -> list[PracticeSet]:
        return list(self._sets)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener` with the new list after every action. Returns an unsubscribe."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self.running:
            await self._queue.put((_STOP, None))
            await self._task
        self._task = None

    async def dispatch(self, action: Action) -> list[PracticeSet]:
        if not self.running:
            raise RuntimeError("SetListStore is not running")
        future = asyncio.get_running_loop().create_future()
        await self._queue.put((action, future))
        return await future

    async def apply_event(self, envelope: dict[str, Any]) -> Optional[list[PracticeSet]]:
        """Dispatch a pushed event for this practice; ignore anything else."""
        if envelope.get("practice_id") != self.practice_id:
            return None
        action = action_for_event(envelope)
        if action is None:
            return None
        return await self.dispatch(action)

    async def __aenter__(self) -> "SetListStore":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def _run(self) -> None:
        while True:
            action, future = await self._queue.get()
            if action is _STOP:
                break
            try:
                self._sets = reduce(self._sets, action, now=self._clock())
            except Exception as e:
                logger.error(
                    "Set list action failed",
                    extra={"practice_id": self.practice_id, "action": type(action).__name__, "error": str(e)},
                )
                if not future.done():
                    future.set_exception(e)
                continue

            if not future.done():
                future.set_result(list(self._sets))
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(list(self._sets))
            except Exception as e:
                logger.error(
                    "Set list listener failed",
                    extra={"practice_id": self.practice_id, "error": str(e)},
                )

"""
Keeps a SetListStore in step with the server.

Three inputs feed the one store: full loads, confirmed results of our
own writes, and events pushed by the server. Edits to a single field
are debounced per (set, field); structural changes (create, delete) are
sent at once.
"""

import logging
from typing import Any, Callable, Hashable, Optional

from ..config.settings import get_settings
from ..core.practice.models import PracticeSet
from .api import PracticeApiClient
from .debounce import DebounceHandle, Debouncer
from .reducer import Add, ReplaceAll, SetListStore

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Hashable, Exception], None]


class PracticeSetSync:
    """
    Wiring between the API client, the debouncer and the store.

    Nothing is applied to the store until the server confirms it, so a
    failed write leaves no local state to undo; the error goes to
    on_error and the user can try again.

    The edit delay defaults to the EDIT_DEBOUNCE_SECONDS setting.
    """

    def __init__(
        self,
        api: PracticeApiClient,
        store: SetListStore,
        debounce_seconds: Optional[float] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._api = api
        self._store = store
        self._on_error = on_error
        if debounce_seconds is None:
            debounce_seconds = get_settings().edit_debounce_seconds
        self._debouncer = Debouncer(delay=debounce_seconds, on_error=self._report)

    @property
    def practice_id(self) -> str:
        return self._store.practice_id

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    async def load(self) -> list[PracticeSet]:
        """Full refetch; also how we recover from any missed events."""
        sets = await self._api.list_sets(self.practice_id)
        return await self._store.dispatch(ReplaceAll(tuple(sets)))

    async def handle_event(self, envelope: dict[str, Any]) -> Optional[list[PracticeSet]]:
        return await self._store.apply_event(envelope)

    async def listen(self) -> None:
        """
        Load, then apply pushed events until the stream ends.

        The stream is opened before loading so that no change slips in
        between the two. Call again to reconnect; every call reloads.
        """
        stream = self._api.stream_events(practice_id=self.practice_id, on_open=self.load)
        async for envelope in stream:
            await self.handle_event(envelope)

    def edit_set(self, set_id: str, field: str, value: Any) -> DebounceHandle:
        """Queue a field edit; a newer edit of the same field replaces it."""
        async def send() -> None:
            await self._send_update({"id": set_id, field: value})

        return self._debouncer.schedule((set_id, field), send)

    async def create_set(self, location_id: str, index: int, **fields: Any) -> PracticeSet:
        committed = await self._send_update({
            "practice_id": self.practice_id,
            "location_id": location_id,
            "index": index,
            **fields,
        })
        return committed[0]

    async def apply(self, updates: list[dict[str, Any]]) -> list[PracticeSet]:
        """Send several changes as one batch, without debouncing."""
        return await self._send_batch(updates)

    async def delete_sets(self, set_ids: list[str]) -> list[PracticeSet]:
        """
        Delete sets, then reload.

        Deleting can renumber every later round, so the whole list is
        refetched rather than patched.
        """
        for set_id in set_ids:
            for key in [k for k in self._debouncer.pending_keys if k[0] == set_id]:
                self._debouncer.cancel(key)
        await self._api.delete_batch(set_ids)
        return await self.load()

    async def close(self) -> None:
        """Send edits still waiting, then stop."""
        await self._debouncer.flush()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    async def _send_update(self, update: dict[str, Any]) -> list[PracticeSet]:
        return await self._send_batch([update])

    async def _send_batch(self, updates: list[dict[str, Any]]) -> list[PracticeSet]:
        committed = await self._api.apply_batch(updates)
        for practice_set in committed:
            await self._store.dispatch(Add(practice_set))
        logger.debug(
            "Applied confirmed sets",
            extra={"practice_id": self.practice_id, "count": len(committed)},
        )
        return committed

    def _report(self, key: Hashable, error: Exception) -> None:
        if self._on_error is not None:
            self._on_error(key, error)

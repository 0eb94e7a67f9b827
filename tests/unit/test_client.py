"""
Tests for the HTTP client and the sync wiring.

The client runs against httpx.MockTransport; the sync layer runs
against a small in-memory stand-in for the API.
"""

import asyncio
import json

import httpx
import pytest

from practice_planner.client.api import PracticeApiClient, PracticeApiError, parse_sse
from practice_planner.client.reducer import SetListStore
from practice_planner.client.sync import PracticeSetSync
from practice_planner.config.settings import get_settings
from practice_planner.core.practice.models import PracticeSet

from conftest import make_set


async def _lines(*lines):
    for line in lines:
        yield line


async def _collect(iterator):
    return [item async for item in iterator]


def _client(handler) -> PracticeApiClient:
    return PracticeApiClient(
        "http://planner.test",
        api_key="key",
        user_id="planner-1",
        transport=httpx.MockTransport(handler),
    )


# ---------------------------------------------------------------------------
# SSE parsing
# ---------------------------------------------------------------------------

class TestParseSse:
    @pytest.mark.asyncio
    async def test_messages_are_split_on_blank_lines(self):
        events = await _collect(parse_sse(_lines(
            "event: practice_set_created",
            'data: {"id": 1}',
            "",
            "event: practice_set_deleted",
            'data: {"id": 2}',
            "",
        )))

        assert events == [{"id": 1}, {"id": 2}]

    @pytest.mark.asyncio
    async def test_comments_are_skipped(self):
        events = await _collect(parse_sse(_lines(": connected", "", ": keepalive", "", 'data: {"ok": true}', "")))

        assert events == [{"ok": True}]

    @pytest.mark.asyncio
    async def test_multi_line_data_is_joined(self):
        events = await _collect(parse_sse(_lines("data: {", 'data: "a": 1}', "")))

        assert events == [{"a": 1}]

    @pytest.mark.asyncio
    async def test_trailing_message_without_blank_line(self):
        events = await _collect(parse_sse(_lines('data: {"last": true}')))

        assert events == [{"last": True}]


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class TestPracticeApiClient:
    @pytest.mark.asyncio
    async def test_requests_carry_identity_headers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["api_key"] = request.headers.get("X-API-Key")
            seen["user_id"] = request.headers.get("X-User-Id")
            seen["path"] = request.url.path
            seen["location_id"] = request.url.params.get("location_id")
            return httpx.Response(200, json=[make_set("s1", 1).to_dict()])

        async with _client(handler) as api:
            sets = await api.list_sets("practice-1", location_id="loc-main")

        assert seen == {
            "api_key": "key",
            "user_id": "planner-1",
            "path": "/api/v1/practices/practice-1/sets",
            "location_id": "loc-main",
        }
        assert [s.id for s in sets] == ["s1"]
        assert isinstance(sets[0], PracticeSet)

    @pytest.mark.asyncio
    async def test_apply_batch_posts_updates(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=[make_set("s1", 2).to_dict()])

        async with _client(handler) as api:
            committed = await api.apply_batch([{"id": "s1", "index": 2}])

        assert captured["body"] == {"updates": [{"id": "s1", "index": 2}]}
        assert committed[0].index == 2

    @pytest.mark.asyncio
    async def test_delete_batch_returns_success(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"ids": ["s1", "s2"]}
            return httpx.Response(200, json={"success": True})

        async with _client(handler) as api:
            assert await api.delete_batch(["s1", "s2"]) is True

    @pytest.mark.asyncio
    async def test_error_detail_is_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(409, json={"detail": "Set index 1 already exists"})

        async with _client(handler) as api:
            with pytest.raises(PracticeApiError) as exc_info:
                await api.apply_batch([{"id": "s1", "index": 1}])

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Set index 1 already exists"

    @pytest.mark.asyncio
    async def test_non_json_error_uses_body_text(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        async with _client(handler) as api:
            with pytest.raises(PracticeApiError, match="Bad Gateway"):
                await api.get_summary("practice-1")

    @pytest.mark.asyncio
    async def test_stream_events_opens_then_yields(self):
        body = ': connected\n\nevent: practice_set_deleted\ndata: {"entity": "PracticeSet"}\n\n'
        opened = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v1/events/practices/practice-1"
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        async def on_open():
            opened.append(True)

        async with _client(handler) as api:
            events = await _collect(api.stream_events(practice_id="practice-1", on_open=on_open))

        assert opened == [True]
        assert events == [{"entity": "PracticeSet"}]

    @pytest.mark.asyncio
    async def test_stream_events_rejection_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"detail": "Club is outside your membership"})

        async with _client(handler) as api:
            with pytest.raises(PracticeApiError) as exc_info:
                await _collect(api.stream_events(club_id="club-9"))

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_stream_events_needs_exactly_one_target(self):
        async with _client(lambda request: httpx.Response(200)) as api:
            with pytest.raises(ValueError):
                await _collect(api.stream_events())


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------

class FakeApi:
    """Keeps sets in a dict and records every batch it is sent."""

    def __init__(self, sets=()):
        self.sets = {s.id: s for s in sets}
        self.batches = []
        self.deleted = []
        self.events = []
        self.fail_with = None

    async def list_sets(self, practice_id, location_id=None):
        return list(self.sets.values())

    async def apply_batch(self, updates):
        self.batches.append(updates)
        if self.fail_with is not None:
            raise self.fail_with
        committed = []
        for update in updates:
            changes = {k: v for k, v in update.items() if k != "id"}
            current = self.sets.get(update.get("id"))
            if current is None:
                current = PracticeSet(id=f"new-{len(self.sets) + 1}")
            updated = current.with_changes(**changes)
            self.sets[updated.id] = updated
            committed.append(updated)
        return committed

    async def delete_batch(self, set_ids):
        self.deleted.append(list(set_ids))
        for set_id in set_ids:
            self.sets.pop(set_id, None)
        return True

    async def stream_events(self, practice_id=None, club_id=None, on_open=None):
        if on_open is not None:
            await on_open()
        for envelope in self.events:
            yield envelope


class TestPracticeSetSync:
    @pytest.fixture
    def fresh_settings(self):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    @pytest.mark.asyncio
    async def test_edit_delay_comes_from_settings(self, monkeypatch, fresh_settings):
        monkeypatch.setenv("EDIT_DEBOUNCE_SECONDS", "0.25")
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(FakeApi([]), store)

        assert sync.debouncer.delay == 0.25

    @pytest.mark.asyncio
    async def test_explicit_edit_delay_wins(self, monkeypatch, fresh_settings):
        monkeypatch.setenv("EDIT_DEBOUNCE_SECONDS", "0.25")
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(FakeApi([]), store, debounce_seconds=3)

        assert sync.debouncer.delay == 3

    @pytest.mark.asyncio
    async def test_load_replaces_store_contents(self):
        api = FakeApi([make_set("s2", 2), make_set("s1", 1)])
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(api, store)

            state = await sync.load()

        assert [s.id for s in state] == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_field_edits_are_coalesced(self):
        api = FakeApi([make_set("s1", 1)])
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(api, store, debounce_seconds=0.02)
            await sync.load()

            for text in ("w", "wa", "watch turns"):
                sync.edit_set("s1", "notes", text)
            await asyncio.sleep(0.1)

            assert api.batches == [[{"id": "s1", "notes": "watch turns"}]]
            assert store.sets[0].notes == "watch turns"

    @pytest.mark.asyncio
    async def test_close_flushes_pending_edits(self):
        api = FakeApi([make_set("s1", 1)])
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(api, store, debounce_seconds=60)
            await sync.load()

            sync.edit_set("s1", "notes", "late")
            await sync.close()

            assert api.batches == [[{"id": "s1", "notes": "late"}]]
            assert store.sets[0].notes == "late"

    @pytest.mark.asyncio
    async def test_create_is_sent_at_once(self):
        api = FakeApi()
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(api, store)

            created = await sync.create_set("loc-main", 1, notes="warm up")

            assert created.location_id == "loc-main"
            assert [s.id for s in store.sets] == [created.id]
        assert api.batches[0][0]["practice_id"] == "practice-1"

    @pytest.mark.asyncio
    async def test_delete_cancels_pending_edits_and_reloads(self):
        api = FakeApi([make_set("s1", 1), make_set("s2", 2)])
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(api, store, debounce_seconds=60)
            await sync.load()
            sync.edit_set("s1", "notes", "never sent")

            state = await sync.delete_sets(["s1"])

            assert not sync.debouncer.is_pending(("s1", "notes"))
        assert api.batches == []
        assert api.deleted == [["s1"]]
        assert [s.id for s in state] == ["s2"]

    @pytest.mark.asyncio
    async def test_failed_edit_reaches_on_error_and_leaves_store(self):
        errors = []
        api = FakeApi([make_set("s1", 1)])
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(api, store, debounce_seconds=0.01, on_error=lambda key, e: errors.append(key))
            await sync.load()
            api.fail_with = PracticeApiError(422, "Lane is required")

            sync.edit_set("s1", "notes", "x")
            await asyncio.sleep(0.1)

            assert errors == [("s1", "notes")]
            assert store.sets[0].notes is None

    @pytest.mark.asyncio
    async def test_listen_loads_then_applies_events(self):
        api = FakeApi([make_set("s1", 1)])
        pushed = make_set("s2", 2)
        api.events = [
            {"entity": "PracticeSet", "event_type": "CREATED", "practice_id": "practice-1", "payload": pushed.to_dict()},
            {"entity": "PracticeSet", "event_type": "DELETED", "practice_id": "practice-1", "payload": {"id": "s1"}},
        ]
        async with SetListStore("practice-1") as store:
            sync = PracticeSetSync(api, store)

            await sync.listen()

            assert [s.id for s in store.sets] == ["s2"]

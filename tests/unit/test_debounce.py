"""
Tests for per-key edit coalescing.

Delays are kept in the tens of milliseconds so the suite stays fast.
"""

import asyncio

import pytest

from practice_planner.client.debounce import Debouncer

DELAY = 0.02
WAIT = 0.1


class Recorder:
    """Collects what was sent, in order."""

    def __init__(self):
        self.sent = []

    def sender(self, value):
        async def send():
            self.sent.append(value)
        return send


class TestDebouncer:
    @pytest.mark.asyncio
    async def test_only_last_edit_in_window_is_sent(self):
        recorder = Recorder()
        debouncer = Debouncer(delay=DELAY)

        for value in ("h", "he", "hello"):
            debouncer.schedule(("s1", "notes"), recorder.sender(value))
        await asyncio.sleep(WAIT)

        assert recorder.sent == ["hello"]
        assert not debouncer.is_pending(("s1", "notes"))

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        recorder = Recorder()
        debouncer = Debouncer(delay=DELAY)

        debouncer.schedule(("s1", "notes"), recorder.sender("notes"))
        debouncer.schedule(("s1", "rating"), recorder.sender("rating"))
        await asyncio.sleep(WAIT)

        assert sorted(recorder.sent) == ["notes", "rating"]

    @pytest.mark.asyncio
    async def test_cancel_stops_the_send(self):
        recorder = Recorder()
        debouncer = Debouncer(delay=DELAY)

        handle = debouncer.schedule("k", recorder.sender("x"))

        assert debouncer.cancel("k")
        assert handle.cancelled
        assert not debouncer.cancel("k")
        await asyncio.sleep(WAIT)
        assert recorder.sent == []

    @pytest.mark.asyncio
    async def test_replaced_handle_is_cancelled(self):
        debouncer = Debouncer(delay=DELAY)

        first = debouncer.schedule("k", Recorder().sender(1))
        debouncer.schedule("k", Recorder().sender(2))

        assert first.cancelled
        assert debouncer.pending_keys == ["k"]
        debouncer.cancel_all()

    @pytest.mark.asyncio
    async def test_flush_sends_immediately(self):
        recorder = Recorder()
        debouncer = Debouncer(delay=60)

        handle = debouncer.schedule("k", recorder.sender("now"))
        await debouncer.flush()

        assert recorder.sent == ["now"]
        assert handle.fired
        assert debouncer.pending_keys == []

    @pytest.mark.asyncio
    async def test_cancel_all_clears_everything(self):
        recorder = Recorder()
        debouncer = Debouncer(delay=DELAY)
        debouncer.schedule("a", recorder.sender("a"))
        debouncer.schedule("b", recorder.sender("b"))

        assert debouncer.cancel_all() == 2
        await asyncio.sleep(WAIT)
        assert recorder.sent == []

    @pytest.mark.asyncio
    async def test_failed_send_is_reported_once(self):
        errors = []
        attempts = []

        async def failing():
            attempts.append(1)
            raise RuntimeError("server down")

        debouncer = Debouncer(delay=DELAY, on_error=lambda key, e: errors.append((key, str(e))))
        debouncer.schedule("k", failing)
        await asyncio.sleep(WAIT)

        assert errors == [("k", "server down")]
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_per_call_delay_overrides_default(self):
        recorder = Recorder()
        debouncer = Debouncer(delay=60)

        debouncer.schedule("k", recorder.sender("fast"), delay=DELAY)
        await asyncio.sleep(WAIT)

        assert recorder.sent == ["fast"]

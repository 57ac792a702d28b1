"""Tests for the trailing-edge debouncer."""

import asyncio

from relpage import Debouncer


class TestDebouncer:
    """Tests for Debouncer."""

    async def test_last_call_wins(self) -> None:
        calls = []
        debounced = Debouncer(calls.append, 10)
        debounced("a")
        debounced("ab")
        debounced("abc")
        assert calls == []
        assert debounced.pending

        await asyncio.sleep(0.03)
        assert calls == ["abc"]
        assert not debounced.pending

    async def test_duration_string(self) -> None:
        calls = []
        debounced = Debouncer(calls.append, "10ms")
        debounced(1)
        await asyncio.sleep(0.03)
        assert calls == [1]

    async def test_cancel(self) -> None:
        calls = []
        debounced = Debouncer(calls.append, 10)
        debounced("x")
        debounced.cancel()
        await asyncio.sleep(0.03)
        assert calls == []

    async def test_flush(self) -> None:
        calls = []
        debounced = Debouncer(lambda *a, **kw: calls.append((a, kw)), "1s")
        debounced(1, key="v")
        debounced.flush()
        assert calls == [((1,), {"key": "v"})]
        assert not debounced.pending

    async def test_flush_without_pending_call(self) -> None:
        calls = []
        debounced = Debouncer(calls.append, 10)
        debounced.flush()
        assert calls == []

    async def test_failure_is_logged(self, caplog) -> None:
        def fail(value):
            raise RuntimeError(value)

        debounced = Debouncer(fail, 1)
        debounced("x")
        await asyncio.sleep(0.02)
        assert "Debounced call" in caplog.text

"""Tests for debounce, throttle and the async helpers."""

import asyncio

import pytest

from recache import Client, create_model
from recache.concurrency import forever, maybe_await, race, run_with_concurrency
from recache.types import MutationOptions


def _recorder(calls: list[int], value: int):
    async def run() -> int:
        calls.append(value)
        return value

    return run


class TestDebounce:
    """Tests for debounced execution."""

    async def test_calls_collapse_into_last(self) -> None:
        """Test that debounced calls run only the last one."""
        storage: dict = {}
        calls: list[int] = []
        options = MutationOptions(debounce=20)

        pending = [
            run_with_concurrency(storage, options, _recorder(calls, value))
            for value in range(3)
        ]
        results = await asyncio.gather(*pending)

        assert calls == [2]
        assert results == [2, 2, 2]

    async def test_window_restarts_on_each_call(self) -> None:
        """Each call restarts the debounce window."""
        storage: dict = {}
        calls: list[int] = []
        options = MutationOptions(debounce="60ms")

        first = run_with_concurrency(storage, options, _recorder(calls, 1))
        await asyncio.sleep(0.04)
        second = run_with_concurrency(storage, options, _recorder(calls, 2))
        await asyncio.sleep(0.04)

        assert calls == []
        assert await second == 2
        assert first.done()

    async def test_errors_reach_every_caller(self) -> None:
        """Test that a debounced failure is raised to the callers."""
        storage: dict = {}

        async def fail() -> None:
            raise RuntimeError("nope")

        pending = run_with_concurrency(storage, MutationOptions(debounce=1), fail)

        with pytest.raises(RuntimeError, match="nope"):
            await pending

    async def test_running_call_is_held_until_done(self) -> None:
        """Test that the fired call keeps a strong reference while it runs."""
        storage: dict = {}
        release = asyncio.Event()

        async def slow() -> str:
            await release.wait()
            return "done"

        pending = run_with_concurrency(storage, MutationOptions(debounce=1), slow)
        await asyncio.sleep(0.02)

        (state,) = storage.values()
        assert len(state.tasks) == 1

        release.set()
        assert await pending == "done"
        await asyncio.sleep(0)
        assert not state.tasks

    async def test_debounced_mutation(self, client: Client) -> None:
        """Test debouncing a mutation through a model."""
        saved: list[str] = []

        async def save(args, ctx):
            saved.append(args["text"])
            return args["text"]

        model = create_model().mutation("save", save, debounce=20)

        results = await model.call(
            client,
            lambda ctx: asyncio.gather(*(ctx["save"]({"text": text}) for text in "abc")),
        )

        assert saved == ["c"]
        assert results == [{"save": "c"}] * 3


class TestThrottle:
    """Tests for throttled execution."""

    async def test_calls_inside_window_never_settle(self) -> None:
        """Throttled calls inside the window never settle."""
        storage: dict = {}
        calls: list[int] = []
        options = MutationOptions(throttle="1s")

        assert await run_with_concurrency(storage, options, _recorder(calls, 1)) == 1
        dropped = run_with_concurrency(storage, options, _recorder(calls, 2))
        await asyncio.sleep(0.01)

        assert not dropped.done()
        assert calls == [1]
        dropped.cancel()

    async def test_window_expires(self) -> None:
        """Test that a call after the window runs."""
        storage: dict = {}
        calls: list[int] = []
        options = MutationOptions(throttle=10)

        await run_with_concurrency(storage, options, _recorder(calls, 1))
        await asyncio.sleep(0.03)
        await run_with_concurrency(storage, options, _recorder(calls, 2))

        assert calls == [1, 2]

    async def test_slots_are_independent(self) -> None:
        """Test that slots keep separate windows."""
        storage: dict = {}
        calls: list[int] = []
        options = MutationOptions(throttle="1s")

        await run_with_concurrency(storage, options, _recorder(calls, 1))
        await run_with_concurrency(storage, options, _recorder(calls, 2), slot="other")

        assert calls == [1, 2]


class TestPassThrough:
    async def test_no_options_runs_directly(self) -> None:
        """Without options the call runs directly."""
        calls: list[int] = []

        result = await run_with_concurrency({}, MutationOptions(), _recorder(calls, 7))

        assert result == 7
        assert calls == [7]


class TestHelpers:
    async def test_forever_is_pending(self) -> None:
        """Test that forever() never settles."""
        future = forever()
        await asyncio.sleep(0)
        assert not future.done()
        future.cancel()

    async def test_maybe_await(self) -> None:
        """Test awaiting plain values and awaitables alike."""
        assert await maybe_await(1) == 1
        assert await maybe_await(asyncio.sleep(0, 2)) == 2

    async def test_race_cancels_losers(self) -> None:
        """The first result wins and the rest are cancelled."""
        slow = asyncio.ensure_future(asyncio.sleep(1, "slow"))

        assert await race(slow, asyncio.sleep(0, "fast")) == "fast"
        await asyncio.sleep(0.01)
        assert slow.cancelled()

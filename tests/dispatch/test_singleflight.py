from __future__ import annotations

import asyncio

import pytest

from lazyworkers import SingleFlight


def run_async(coro):
    return asyncio.run(coro)


def test_concurrent_callers_share_one_execution():
    async def scenario() -> None:
        flight: SingleFlight[str, str] = SingleFlight()
        release = asyncio.Event()
        calls = 0
        firsts: list[int] = []
        joins: list[int] = []

        async def operation() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "r2"

        tasks = [
            asyncio.create_task(
                flight.run(
                    "doc-B",
                    operation,
                    on_first=lambda: firsts.append(1),
                    on_not_first=lambda: joins.append(1),
                )
            )
            for _ in range(5)
        ]
        await asyncio.sleep(0)
        assert flight.pending("doc-B")
        assert flight.pending_count == 1

        release.set()
        results = await asyncio.gather(*tasks)

        assert results == ["r2"] * 5
        assert calls == 1
        assert len(firsts) == 1
        assert len(joins) == 4
        assert not flight.pending("doc-B")

    run_async(scenario())


def test_failure_reaches_every_waiter_and_next_call_starts_fresh():
    async def scenario() -> None:
        flight: SingleFlight[str, str] = SingleFlight()
        error = RuntimeError("launch failed")
        calls = 0

        async def failing() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            raise error

        results = await asyncio.gather(
            flight.run("doc-C", failing),
            flight.run("doc-C", failing),
            return_exceptions=True,
        )
        assert results[0] is error
        assert results[1] is error
        assert calls == 1

        async def succeeding() -> str:
            nonlocal calls
            calls += 1
            return "r3"

        assert await flight.run("doc-C", succeeding) == "r3"
        assert calls == 2

    run_async(scenario())


def test_pending_record_is_gone_before_waiters_resume():
    async def scenario() -> None:
        flight: SingleFlight[str, str] = SingleFlight()

        async def operation() -> str:
            await asyncio.sleep(0.01)
            return "value"

        async def failing() -> str:
            await asyncio.sleep(0.01)
            raise ValueError("nope")

        async def observe_success() -> bool:
            await flight.run("k", operation)
            return flight.pending("k")

        async def observe_failure() -> bool:
            with pytest.raises(ValueError):
                await flight.run("j", failing)
            return flight.pending("j")

        still_pending = await asyncio.gather(
            observe_success(),
            observe_success(),
            observe_failure(),
            observe_failure(),
        )
        assert still_pending == [False, False, False, False]

    run_async(scenario())


def test_cancelling_one_waiter_keeps_shared_execution_alive():
    async def scenario() -> None:
        flight: SingleFlight[str, str] = SingleFlight()
        release = asyncio.Event()
        calls = 0

        async def operation() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "route"

        first = asyncio.create_task(flight.run("k", operation))
        second = asyncio.create_task(flight.run("k", operation))
        await asyncio.sleep(0)

        first.cancel()
        await asyncio.gather(first, return_exceptions=True)
        assert first.cancelled()
        assert flight.pending("k")

        release.set()
        assert await second == "route"
        assert calls == 1

    run_async(scenario())


def test_distinct_keys_run_independently():
    async def scenario() -> None:
        flight: SingleFlight[str, str] = SingleFlight()
        started: list[str] = []
        release = asyncio.Event()

        def make(key: str):
            async def operation() -> str:
                started.append(key)
                await release.wait()
                return f"route-{key}"

            return operation

        tasks = [
            asyncio.create_task(flight.run("a", make("a"))),
            asyncio.create_task(flight.run("b", make("b"))),
        ]
        await asyncio.sleep(0.01)
        assert sorted(started) == ["a", "b"]
        assert flight.pending_count == 2

        release.set()
        assert await asyncio.gather(*tasks) == ["route-a", "route-b"]
        assert flight.pending_count == 0

    run_async(scenario())

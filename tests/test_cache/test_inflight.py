"""Tests for the in-flight coalescing registry."""

import asyncio

import pytest

from imgcache.cache.inflight import InFlightRegistry


class TestInFlightRegistry:
    async def test_single_call(self):
        registry = InFlightRegistry()

        async def compute():
            return 42

        assert await registry.run("k", compute) == 42
        assert len(registry) == 0
        assert registry.coalesced == 0

    async def test_concurrent_same_key_runs_once(self):
        registry = InFlightRegistry()
        release = asyncio.Event()
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            await release.wait()
            return "shared"

        tasks = [asyncio.create_task(registry.run("k", compute)) for _ in range(4)]
        await asyncio.sleep(0)
        assert "k" in registry
        release.set()

        results = await asyncio.gather(*tasks)
        assert results == ["shared"] * 4
        assert calls == 1
        assert registry.coalesced == 3
        assert "k" not in registry

    async def test_different_keys_run_separately(self):
        registry = InFlightRegistry()
        calls = []

        async def compute(key):
            calls.append(key)
            await asyncio.sleep(0.01)
            return key

        results = await asyncio.gather(
            registry.run("a", lambda: compute("a")),
            registry.run("b", lambda: compute("b")),
        )
        assert results == ["a", "b"]
        assert sorted(calls) == ["a", "b"]

    async def test_exception_shared_and_cleared(self):
        registry = InFlightRegistry()
        release = asyncio.Event()

        async def compute():
            await release.wait()
            raise ValueError("boom")

        tasks = [asyncio.create_task(registry.run("k", compute)) for _ in range(2)]
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, ValueError) for r in results)
        assert len(registry) == 0

        async def ok():
            return "recovered"

        assert await registry.run("k", ok) == "recovered"

    async def test_cancelled_waiter_does_not_cancel_others(self):
        registry = InFlightRegistry()
        release = asyncio.Event()

        async def compute():
            await release.wait()
            return "done"

        first = asyncio.create_task(registry.run("k", compute))
        second = asyncio.create_task(registry.run("k", compute))
        await asyncio.sleep(0)

        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        release.set()
        assert await second == "done"

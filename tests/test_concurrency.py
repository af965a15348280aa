"""Test bounded concurrent mapping"""

import asyncio

import pytest

from spotify_cleanup.spotify.concurrency import map_concurrently


class TestMapConcurrently:
    """Test the fixed worker pool"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 2, 3, 10])
    async def test_preserves_input_order(self, limit):
        """Results follow input order even when later items finish first"""
        items = [5, 1, 4, 2, 3]

        async def slow_identity(value):
            await asyncio.sleep(value * 0.002)
            return value * 10

        results = await map_concurrently(items, limit, slow_identity)

        assert results == [50, 10, 40, 20, 30]

    @pytest.mark.asyncio
    async def test_bounds_in_flight_calls(self):
        """Never more than `limit` calls run at the same time"""
        in_flight = 0
        peak = 0

        async def track(value):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.001)
            in_flight -= 1
            return value

        await map_concurrently(list(range(20)), 3, track)

        assert peak == 3

    @pytest.mark.asyncio
    async def test_empty_input(self):
        async def never(value):
            raise AssertionError("not called")

        assert await map_concurrently([], 4, never) == []

    @pytest.mark.asyncio
    async def test_invalid_limit(self):
        async def identity(value):
            return value

        with pytest.raises(ValueError):
            await map_concurrently([1], 0, identity)

    @pytest.mark.asyncio
    async def test_error_propagates_and_stops_workers(self):
        """The first failure is raised and pending items are not started"""
        started = []

        async def fail_on_two(value):
            started.append(value)
            await asyncio.sleep(0.001)
            if value == 2:
                raise RuntimeError("boom")
            return value

        with pytest.raises(RuntimeError, match="boom"):
            await map_concurrently(list(range(50)), 2, fail_on_two)

        assert len(started) < 50

    @pytest.mark.asyncio
    async def test_on_result_callback(self):
        seen = []

        async def double(value):
            return value * 2

        await map_concurrently([1, 2, 3], 2, double, on_result=lambda index, result: seen.append((index, result)))

        assert sorted(seen) == [(0, 2), (1, 4), (2, 6)]

"""
Bounded concurrency for remote calls

Spotify enforces a per-second request ceiling, so fanning out one task per
playlist quickly turns into cascading 429 responses. map_concurrently runs a
fixed pool of workers that pull the next index from a shared cursor; the pool
size, not the collection size, bounds how many requests are in flight.
"""

import asyncio
import itertools
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar('T')
R = TypeVar('R')


async def map_concurrently(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T], Awaitable[R]],
    on_result: Optional[Callable[[int, R], None]] = None
) -> List[R]:
    """
    Apply an async function to every item with at most `limit` calls in flight

    Args:
        items: Inputs, in order
        limit: Maximum number of concurrent `fn` invocations (>= 1)
        fn: Coroutine function applied to each item
        on_result: Optional callback invoked with (index, result) as each call
            finishes, in completion order (used for progress reporting)

    Returns:
        Results in the same order as `items`, whatever the completion order

    Raises:
        ValueError: If limit < 1
        Exception: The first exception raised by `fn`; the other workers are
            cancelled before it propagates
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    results: List[Optional[R]] = [None] * len(items)
    if not items:
        return []

    # The event loop is single threaded and next() never yields, so the
    # shared cursor hands each index to exactly one worker.
    cursor = itertools.count()

    async def worker() -> None:
        while True:
            index = next(cursor)
            if index >= len(items):
                return
            result = await fn(items[index])
            results[index] = result
            if on_result is not None:
                on_result(index, result)

    workers = [asyncio.ensure_future(worker()) for _ in range(min(limit, len(items)))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    return results  # type: ignore[return-value]

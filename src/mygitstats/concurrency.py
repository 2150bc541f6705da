"""Fixed-width async worker pool."""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_with_concurrency(
    items: Sequence[T],
    concurrency: int,
    fn: Callable[[T], Awaitable[R]],
) -> list[R | None]:
    """Run ``fn`` over ``items`` with at most ``concurrency`` calls in flight.

    ``min(concurrency, len(items))`` workers each claim the next unclaimed
    index until none remain, so results line up with ``items`` whatever the
    completion order.

    An exception raised by ``fn`` ends only the worker that hit it; the other
    workers keep draining the remaining items. Once every worker has stopped,
    the first such exception is re-raised. Slots no worker reached are None.

    Args:
        items: Inputs to process.
        concurrency: Worker pool width, at least 1.
        fn: Async unit of work. Callers should catch expected errors inside it.

    Returns:
        Results positionally aligned with ``items``.

    Raises:
        ValueError: If concurrency is below 1.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    results: list[R | None] = [None] * len(items)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            # No await between the check and the claim, so this is atomic.
            idx = next_index
            next_index += 1
            results[idx] = await fn(items[idx])

    lanes = [worker() for _ in range(min(concurrency, len(items)))]
    outcomes = await asyncio.gather(*lanes, return_exceptions=True)

    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    return results

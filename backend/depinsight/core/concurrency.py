import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def map_with_concurrency(
    items: Sequence[T],
    fn: Callable[[T, int], Awaitable[R]],
    concurrency: int = 10,
) -> List[R]:
    """
    Apply an async function to every item with at most `concurrency` calls in flight.

    Results are returned in input order. The first exception raised by `fn`
    propagates to the caller.

    Args:
        items: Items to process
        fn: Async function called as fn(item, index)
        concurrency: Maximum number of concurrent calls
    """
    if not items:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run(index: int, item: T) -> R:
        async with semaphore:
            return await fn(item, index)

    return list(await asyncio.gather(*(run(i, item) for i, item in enumerate(items))))

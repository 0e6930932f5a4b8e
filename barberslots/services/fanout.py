"""
Concurrent fan-out of independent port reads.
"""

import asyncio
from typing import Awaitable, List, TypeVar

T = TypeVar("T")


async def gather_all(*pending: Awaitable[T]) -> List[T]:
    """
    Run awaitables concurrently and return their results in order.

    When one of them fails, the others are cancelled and awaited before the
    first error is re-raised, so no task outlives the call.
    """
    tasks = [asyncio.ensure_future(item) for item in pending]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

"""Test utilities for tablewire tests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from tablewire.planning import ScanPlanService

type ServiceFactory = Callable[..., ScanPlanService]


async def retry_until(
    condition: Callable[[], bool | Awaitable[bool]],
    *,
    timeout: float = 2.0,
    interval: float = 0.01,
    message: str = "Condition not met within timeout",
) -> None:
    """Wait until ``condition`` holds, checking every ``interval`` seconds.

    ``condition`` may be a plain callable or return a coroutine.

    Raises
    ------
    TimeoutError
        If the condition does not hold within ``timeout`` seconds.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        result = condition()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return
        await asyncio.sleep(interval)
    raise TimeoutError(message)

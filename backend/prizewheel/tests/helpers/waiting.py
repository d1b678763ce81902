import asyncio
from collections.abc import Callable


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll predicate on the event loop until it holds or timeout expires."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)

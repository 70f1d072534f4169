import asyncio
import time
from collections.abc import Awaitable, Callable


async def poll_until[T](
    current: T,
    fetch: Callable[[], Awaitable[T]],
    is_done: Callable[[T], bool],
    *,
    interval: float,
    timeout: float,
    started_at: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """
    Fetch a new value every `interval` seconds until `is_done` holds for it.

    `current` is checked first, so nothing is fetched if it is already done.
    `timeout` is measured from `started_at` (defaults to now) using `clock`. Once exceeded,
    raises TimeoutError without fetching again.

    `sleep` and `clock` can be replaced, e.g. to run without real delays in tests.
    """
    if started_at is None:
        started_at = clock()

    while not is_done(current):
        if clock() - started_at > timeout:
            msg = f"Exceeded {timeout}s"
            raise TimeoutError(msg)
        await sleep(interval)
        current = await fetch()
    return current

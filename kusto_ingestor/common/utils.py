import asyncio
from concurrent.futures import Executor
from functools import partial
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


def run_sync(func: Callable[..., T], executor: Optional[Executor] = None):
    """Run a blocking function in a thread pool executor.

    Args:
        func: The function to run in the thread pool.
        executor: Executor to use. Defaults to the event loop's default executor.

    Returns:
        An async wrapper function that runs the input function in a thread pool.

    Usage:
        >>> exists = await run_sync(directory_client.exists, executor)()
    """

    async def wrapper(*args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, partial(func, *args, **kwargs))

    return wrapper


async def with_timeout(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await ``awaitable``, bounded by ``timeout`` seconds.

    A timeout of ``None`` or ``0`` waits indefinitely. Raises
    ``asyncio.TimeoutError`` when the bound is exceeded.
    """
    if not timeout:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)

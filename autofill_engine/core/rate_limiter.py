"""Pacing for classifier backend calls."""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from autofill_engine.tools.constants import CHUNK_COOLDOWN

logger = logging.getLogger(__name__)


class RequestPacer:
    """
    Inserts a fixed cooldown between consecutive backend calls of one sequence.

    The first call after construction or `reset()` goes out immediately; every
    later call waits `cooldown` seconds first. Calls are awaited one at a time.
    """

    def __init__(self, cooldown: float = CHUNK_COOLDOWN,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """
        Initialize the pacer.

        Args:
            cooldown: Seconds to wait between consecutive calls
            sleep: Awaitable sleep function, injectable for tests
        """
        self.cooldown = cooldown
        self._sleep = sleep
        self._calls = 0
        logger.debug(f"Request pacer initialized with {cooldown}s cooldown")

    def reset(self) -> None:
        """Start a new sequence; the next call is not delayed."""
        self._calls = 0

    async def execute_api_call(self, api_func: Callable, *args: Any, **kwargs: Any) -> Any:
        """
        Execute an API call after the cooldown, if one is due.

        Args:
            api_func: Coroutine function to call
            *args: Positional arguments for the API function
            **kwargs: Keyword arguments for the API function

        Returns:
            Result from the API function
        """
        if self._calls > 0 and self.cooldown > 0:
            logger.debug(f"Pacing: waiting {self.cooldown:.2f}s before API call")
            await self._sleep(self.cooldown)

        self._calls += 1
        logger.debug(f"Making API call: {getattr(api_func, '__name__', api_func)}")
        return await api_func(*args, **kwargs)

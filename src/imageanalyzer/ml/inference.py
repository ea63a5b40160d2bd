"""Worker pool for blocking calls made by the analyzer.

Model loading, camera reads, image decoding and ONNX inference all block,
so the analyzer awaits them here instead of running them on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from imageanalyzer.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InferencePool:
    """At most ``max_concurrent`` blocking calls at once, the rest wait their turn."""

    def __init__(self, settings: Settings) -> None:
        self._slots = asyncio.Semaphore(settings.max_concurrent)
        self._queue_timeout = settings.queue_timeout
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_concurrent,
            thread_name_prefix="analyzer-worker",
        )
        # Only touched from the event loop thread.
        self._pending = 0

    @property
    def pending(self) -> int:
        """Calls that are running or waiting for a slot."""
        return self._pending

    async def run(self, func: Callable[..., T], *args: object) -> T:
        """Run ``func(*args)`` on a worker thread.

        Raises:
            TimeoutError: ``queue_timeout`` is set and no slot freed up in time.
        """
        self._pending += 1
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self._queue_timeout)
            try:
                return await asyncio.get_running_loop().run_in_executor(self._executor, func, *args)
            finally:
                self._slots.release()
        finally:
            self._pending -= 1

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
        logger.info("Worker pool shut down")

"""Self re-arming prediction loop for the webcam."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class LoopState(StrEnum):
    RUNNING = "running"
    STOPPED = "stopped"


class PredictionLoop:
    """Runs ``step`` repeatedly on the event loop until stopped.

    Each cycle awaits ``step`` to completion before re-arming, so cycles never
    overlap. ``step`` returns False to end the loop itself. ``stop()`` only
    clears the running flag: a cycle already in flight finishes, but nothing
    is scheduled after it. ``on_exit`` runs once when the task ends.
    """

    def __init__(
        self,
        step: Callable[[], Awaitable[bool]],
        *,
        interval: float = 0.0,
        on_exit: Callable[[], None] | None = None,
        name: str = "prediction-loop",
    ) -> None:
        self._step = step
        self._interval = interval
        self._on_exit = on_exit
        self._name = name
        self._state = LoopState.STOPPED
        self._task: asyncio.Task[None] | None = None
        self._cycles = 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def start(self) -> None:
        if self._task is not None:
            return
        self._state = LoopState.RUNNING
        self._task = asyncio.create_task(self._run(), name=self._name)

    def stop(self) -> None:
        self._state = LoopState.STOPPED

    async def wait(self) -> None:
        """Wait for the task to finish after a stop."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _run(self) -> None:
        try:
            while self._state is LoopState.RUNNING:
                keep_going = await self._step()
                self._cycles += 1
                if not keep_going or self._state is not LoopState.RUNNING:
                    break
                await asyncio.sleep(self._interval)
        finally:
            self._state = LoopState.STOPPED
            logger.debug("%s exited after %d cycles", self._name, self._cycles)
            if self._on_exit is not None:
                self._on_exit()

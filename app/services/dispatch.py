# app/services/dispatch.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Set

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """
    Fire-and-forget side effects. A spawned job runs detached from the
    request; its failure is logged here and never reaches the caller.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, job: Callable[[], Awaitable[None]], label: str) -> asyncio.Task:
        async def _run():
            try:
                await job()
            except asyncio.CancelledError:
                logger.warning("[detached] %s cancelled", label)
                raise
            except Exception:
                logger.exception("[detached] %s failed", label)

        task = asyncio.get_running_loop().create_task(_run(), name=label)
        # the loop only keeps weak refs to tasks
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding job, including ones spawned while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


dispatcher = BackgroundDispatcher()

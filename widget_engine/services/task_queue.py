"""
Persistence Queue - detached best-effort writes.

Writes are scheduled as independent asyncio tasks so the conversational flow
never waits on durable storage. Failures are logged and counted, never raised.
"""
import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class PersistenceQueue:
    """Fire-and-forget task set with logged failures."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, operation: Awaitable, description: str) -> asyncio.Task:
        """Schedule `operation` without awaiting it. Must run inside the event loop."""
        task = asyncio.get_running_loop().create_task(self._run(operation, description))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, operation: Awaitable, description: str) -> None:
        try:
            await operation
            self.completed += 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed += 1
            logger.error(f"Background write failed ({description}): {e}")

    async def drain(self) -> None:
        """Wait until every scheduled write has settled, including writes scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

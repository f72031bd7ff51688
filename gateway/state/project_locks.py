"""
Project Locks
=============
Per-project mutual exclusion for workspace operations.

A clone, test run, export or cleanup against one projectId holds that
project's lock for its whole duration, so a cleanup can no longer delete a
directory a clone is still populating. Different projects never wait on
each other.

Entries are dropped from the registry once no request holds or awaits
them, so the registry only grows with the number of projects in flight.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class ProjectLockRegistry:
    """Registry of asyncio locks keyed by project identifier."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._locks

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, project_id: str) -> AsyncIterator[None]:
        """Hold the lock for ``project_id`` for the duration of the block."""
        if not self.enabled:
            yield
            return

        lock = self._locks.setdefault(project_id, asyncio.Lock())
        self._users[project_id] = self._users.get(project_id, 0) + 1
        try:
            if lock.locked():
                logger.info("Waiting for in-flight operation on project %s", project_id)
            async with lock:
                yield
        finally:
            self._users[project_id] -= 1
            if self._users[project_id] == 0:
                del self._users[project_id]
                del self._locks[project_id]

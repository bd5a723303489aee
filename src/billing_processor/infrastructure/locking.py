"""Per-owner locking for processor read-check-write cycles.

The lock serializes local mutations of one owner's aggregate within this
process. It must only be held around the local load/check/save; remote
gateway calls happen outside it. Cross-process safety comes from the
repository's revision check.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

logger = structlog.get_logger()


class OwnerLocks:
    """
    asyncio locks keyed by owner.

    Locks are created on demand and dropped once no task holds or waits for
    them, so memory does not grow with the number of owners ever seen.
    Different owners never contend with each other.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, owner: str) -> AsyncIterator[None]:
        """Hold the owner's lock for the duration of the block.

        Example:
            >>> async with locks.hold("user@domain.tld"):
            ...     aggregate = await repository.get("user@domain.tld")
            ...     await repository.save(aggregate.with_default(provider))
        """
        lock = self._locks.get(owner)
        if lock is None:
            lock = self._locks[owner] = asyncio.Lock()
        self._users[owner] = self._users.get(owner, 0) + 1

        try:
            async with lock:
                logger.debug("owner_lock_acquired", owner=owner)
                yield
        finally:
            self._users[owner] -= 1
            if self._users[owner] == 0:
                del self._users[owner]
                del self._locks[owner]
            logger.debug("owner_lock_released", owner=owner)

    def is_locked(self, owner: str) -> bool:
        lock = self._locks.get(owner)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

"""Per-ledger mutation locks.

Mutations of one (student, course) ledger are serialized in two layers:

- an ``asyncio.Lock`` per key, always on (one worker process)
- a Redis lock per key when Redis is configured (all workers)

The ledger version check in the store still catches anything that slips
through, e.g. a Redis lock that expired mid-mutation.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from redis.exceptions import LockError

from skillpath.core.redis import ledger_lock_key

from .exceptions import LedgerConflictError


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

LedgerKey = tuple[UUID, UUID]


class LedgerLocks:
    """Keyed locks for enrollment ledgers."""

    def __init__(
        self,
        redis: "Redis | None" = None,
        lock_timeout: float = 10,
        blocking_timeout: float = 5,
    ):
        self.redis = redis
        self.lock_timeout = lock_timeout
        self.blocking_timeout = blocking_timeout
        self._locks: dict[LedgerKey, asyncio.Lock] = {}
        self._waiters: dict[LedgerKey, int] = {}

    @property
    def distributed(self) -> bool:
        return self.redis is not None

    def active_keys(self) -> int:
        """Number of keys with a holder or waiter (tests, diagnostics)."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, student_id: UUID, course_id: UUID) -> AsyncIterator[None]:
        """Hold the ledger lock for the duration of the block.

        Raises:
            LedgerConflictError: Redis lock not acquired within blocking_timeout
        """
        key = (student_id, course_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                if self.redis is None:
                    yield
                else:
                    async with self._hold_distributed(
                        self.redis, student_id, course_id
                    ):
                        yield
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._locks[key]

    @asynccontextmanager
    async def _hold_distributed(
        self, redis: "Redis", student_id: UUID, course_id: UUID
    ) -> AsyncIterator[None]:
        name = ledger_lock_key(student_id, course_id)
        lock = redis.lock(
            name,
            timeout=self.lock_timeout,
            blocking_timeout=self.blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("ledger_lock_timeout", lock=name)
            raise LedgerConflictError("Enrollment is busy, please retry")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the version check guards the write
                logger.warning("ledger_lock_expired", lock=name)

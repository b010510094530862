"""
Procurement Workflow Hub - Transition Lock

Process-wide mutual exclusion for status transitions, with a bounded wait.

In `global` scope every transition shares one lock, so at most one
transition is in flight at a time. In `document` scope each document number
gets its own lock: transitions on different documents run concurrently while
transitions on the same document are still serialized. Only the row
mutation and audit append run under the lock; the queue recompute that
touches many rows runs after release, so no lock ordering is involved.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager

from services.workflow_config import LockScope
from services.workflow_errors import LockTimeoutError

logger = logging.getLogger(__name__)

_GLOBAL_KEY = "__all_documents__"


def _abandon(lock: asyncio.Lock, acquire: "asyncio.Future") -> None:
    """Cancel a pending acquire. If it still wins the race, release the lock right away."""
    acquire.cancel()
    acquire.add_done_callback(lambda task: None if task.cancelled() else lock.release())


class TransitionLock:

    def __init__(self, timeout_seconds: float = 30.0, scope: str = LockScope.DOCUMENT):
        self.timeout_seconds = timeout_seconds
        self.scope = scope
        # Locks vanish once no coroutine holds or waits on them
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _key_for(self, doc_number: str) -> str:
        return _GLOBAL_KEY if self.scope == LockScope.GLOBAL else doc_number

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def locked(self, doc_number: str) -> bool:
        lock = self._locks.get(self._key_for(doc_number))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, doc_number: str):
        """
        Hold the lock guarding doc_number for the duration of the block.

        Raises LockTimeoutError if the lock is not acquired within the
        configured timeout. The lock is always released on exit.
        """
        key = self._key_for(doc_number)
        lock = self._lock_for(key)
        acquire = asyncio.ensure_future(lock.acquire())
        try:
            done, _ = await asyncio.wait({acquire}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            _abandon(lock, acquire)
            raise
        if not done:
            _abandon(lock, acquire)
            logger.warning("Transition lock timeout: key=%s, waited=%ss", key, self.timeout_seconds)
            raise LockTimeoutError(doc_number, self.timeout_seconds)
        try:
            yield
        finally:
            lock.release()

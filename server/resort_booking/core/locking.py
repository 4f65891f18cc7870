"""Lock helpers that serialize reservation work on shared inventory."""

import asyncio
import logging
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Iterable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .database import is_postgresql

logger = logging.getLogger(__name__)


class LockRegistry:
    """
    Process-local named asyncio locks.

    Locks are held in a weak-value map so a key's lock disappears once no
    coroutine references it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def acquire(self, keys: Iterable[str]) -> AsyncIterator[None]:
        """Acquire every key's lock in sorted order, release on exit."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self.get(key))
            yield


lock_registry = LockRegistry()


async def acquire_advisory_locks(db: AsyncSession, keys: Iterable[str]) -> None:
    """
    Take transaction-scoped PostgreSQL advisory locks for ``keys``.

    The locks are released when the transaction ends. Other backends rely on
    the process-local registry alone.
    """
    if not is_postgresql(db):
        return

    for key in sorted(set(keys)):
        await db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
            {"lock_key": key},
        )
        logger.debug("Acquired advisory lock", extra={"lock_key": key})


@asynccontextmanager
async def reservation_guard(db: AsyncSession, keys: Iterable[str]) -> AsyncIterator[None]:
    """Hold process and database locks on ``keys`` for the rest of the transaction."""
    keys = sorted(set(keys))
    async with lock_registry.acquire(keys):
        await acquire_advisory_locks(db, keys)
        yield


def room_lock_key(room_id) -> str:
    return f"room:{room_id}"


def guest_lock_key(tenant_id, email: str) -> str:
    return f"guest:{tenant_id}:{email.strip().lower()}"


def voucher_lock_key(tenant_id, code: str) -> str:
    return f"voucher:{tenant_id}:{code.strip().upper()}"


def day_tour_lock_key(tenant_id, tour_date) -> str:
    return f"day_tour:{tenant_id}:{tour_date.isoformat()}"

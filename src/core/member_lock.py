"""Keyed asyncio locks serializing balance and completion state changes."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager


logger = logging.getLogger(__name__)


class KeyedLocks:
    """A registry of asyncio locks, one per key, dropped when nobody holds or awaits them."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        if lock.locked():
            logger.debug("keyed_lock_wait", extra={"registry": self.name, "key": key})
        try:
            async with lock:
                yield
        finally:
            remaining = self._users.get(key, 1) - 1
            if remaining > 0:
                self._users[key] = remaining
            elif self._locks.get(key) is lock:
                del self._locks[key]
                self._users.pop(key, None)

    def clear(self) -> None:
        self._locks.clear()
        self._users.clear()


_member_locks = KeyedLocks("member")
_completion_locks = KeyedLocks("completion")


def member_lock(member_id: str) -> AbstractAsyncContextManager[None]:
    """Hold the balance lock for a member.

    Every operation that reads points_balance and writes it back must run inside
    this context so concurrent completions and undos for one member queue up
    instead of losing updates. The lock is not reentrant.
    """
    return _member_locks.hold(member_id)


def completion_lock(completion_id: str) -> AbstractAsyncContextManager[None]:
    """Hold the lock for one completion's verification state and ledger entries.

    Reviews and undos of the same completion take this lock before the
    completer's member lock, always in that order.
    """
    return _completion_locks.hold(completion_id)


def tracked_lock_count() -> int:
    """Number of member and completion locks currently registered."""
    return len(_member_locks) + len(_completion_locks)


def clear_member_locks() -> None:
    """Forget all locks (only safe when no operation is in flight)."""
    _member_locks.clear()
    _completion_locks.clear()

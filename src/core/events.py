"""Refresh notifications for views that display balances and task lists.

Callers register observers explicitly instead of relying on a global hook.
Notifying with no observers registered is a no-op, and an observer that fails
never fails the accounting operation that triggered it.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum


logger = logging.getLogger(__name__)


class RefreshReason(StrEnum):
    """Why a refresh is being requested."""

    TASK_COMPLETED = "task_completed"
    COMPLETION_UNDONE = "completion_undone"
    COMPLETION_VERIFIED = "completion_verified"
    POINTS_ADJUSTED = "points_adjusted"
    TASKS_CHANGED = "tasks_changed"


RefreshObserver = Callable[[str, RefreshReason], Awaitable[None] | None]


class RefreshNotifier:
    """Registry of observers interested in family data changes."""

    def __init__(self) -> None:
        self._observers: list[RefreshObserver] = []

    def register(self, observer: RefreshObserver) -> None:
        """Register an observer. Registering the same observer twice has no effect."""
        if observer not in self._observers:
            self._observers.append(observer)

    def unregister(self, observer: RefreshObserver) -> None:
        """Remove an observer if present."""
        if observer in self._observers:
            self._observers.remove(observer)

    def clear(self) -> None:
        self._observers.clear()

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    async def notify(self, family_id: str, reason: RefreshReason) -> None:
        """Call every registered observer with the family that changed."""
        for observer in list(self._observers):
            try:
                result = observer(family_id, reason)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Refresh observer failed for family %s (%s)",
                    family_id,
                    reason,
                )


async def notify_refresh(notifier: RefreshNotifier | None, family_id: str | None, reason: RefreshReason) -> None:
    """Notify if a notifier was supplied by the call site."""
    if notifier is None or not family_id:
        return
    await notifier.notify(family_id, reason)

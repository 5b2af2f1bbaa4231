"""Optimistic local updates with rollback.

The caller's state is changed before the backend confirms, and undone if
the backend call raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


class OptimisticUpdate(Generic[T]):
    """Apply locally, commit remotely, undo on failure.

    *read* and *write* give access to the piece of local state being
    updated. *apply* must return a new value rather than mutating the one
    it is given.

    With *revert*, a failure undoes only this change on whatever the state
    holds by then, so anything written while the commit was in flight
    survives. Without it the state is reset to the pre-apply snapshot.
    """

    def __init__(self, read: Callable[[], T], write: Callable[[T], None]) -> None:
        self._read = read
        self._write = write

    async def run(
        self,
        apply: Callable[[T], T],
        commit: Callable[[], Awaitable[R]],
        revert: Callable[[T], T] | None = None,
    ) -> R:
        snapshot = self._read()
        self._write(apply(snapshot))
        try:
            return await commit()
        except Exception:
            logger.debug("Optimistic update failed, rolling back")
            self._write(snapshot if revert is None else revert(self._read()))
            raise


class SettleGuard:
    """Keys held busy while a change is in flight and for ``delay`` after it.

    ``acquire`` refuses a key that is already held. ``settle`` releases it
    once the delay passes; ``release`` frees it at once, e.g. after a failure.
    """

    def __init__(self, delay: float) -> None:
        self.delay = delay
        self._held: set[Hashable] = set()
        self._handles: dict[Hashable, asyncio.TimerHandle] = {}

    def __contains__(self, key: Hashable) -> bool:
        return key in self._held

    def __len__(self) -> int:
        return len(self._held)

    def acquire(self, key: Hashable) -> bool:
        if key in self._held:
            return False
        self._held.add(key)
        return True

    def settle(self, key: Hashable) -> None:
        loop = asyncio.get_running_loop()
        self._cancel(key)
        self._handles[key] = loop.call_later(self.delay, self.release, key)

    def release(self, key: Hashable) -> None:
        self._cancel(key)
        self._held.discard(key)

    def _cancel(self, key: Hashable) -> None:
        handle = self._handles.pop(key, None)
        if handle is not None:
            handle.cancel()

    def close(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        self._held.clear()

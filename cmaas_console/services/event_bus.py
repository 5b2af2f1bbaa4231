"""Per-caller console event feed.

Every event is published into a scope, the opaque key of the session that
caused it, and reaches only the subscribers of that same scope. One
operator's writes or expired token are never visible on another operator's
stream.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class ConsoleEvent(str, enum.Enum):
    SESSION_EXPIRED = "session.expired"
    CONTENT_TYPE_CREATED = "content_type.created"
    CONTENT_TYPE_UPDATED = "content_type.updated"
    CONTENT_TYPE_DELETED = "content_type.deleted"
    ENTRY_CREATED = "entry.created"
    ENTRY_UPDATED = "entry.updated"
    ENTRY_DELETED = "entry.deleted"
    ENTRY_VISIBILITY_CHANGED = "entry.visibility_changed"


@dataclass
class Subscription:
    scope: str
    queue: asyncio.Queue = field(repr=False)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


def sse_frame(event: dict) -> str:
    return f"id: {event['id']}\ndata: {json.dumps(event)}\n\n"


class EventBus:
    def __init__(self, maxsize: int = 256) -> None:
        self.maxsize = maxsize
        self._scopes: dict[str, dict[str, Subscription]] = {}

    def subscribe(self, scope: str, maxsize: int | None = None) -> Subscription:
        if not scope:
            raise ValueError("A subscription needs a scope")
        sub = Subscription(scope, asyncio.Queue(maxsize=maxsize or self.maxsize))
        self._scopes.setdefault(scope, {})[sub.id] = sub
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._scopes.get(sub.scope)
        if subs is None:
            return
        subs.pop(sub.id, None)
        if not subs:
            del self._scopes[sub.scope]

    def subscriber_count(self, scope: str) -> int:
        return len(self._scopes.get(scope, {}))

    async def publish(
        self,
        event_type: ConsoleEvent,
        payload: dict | None = None,
        *,
        scope: str | None,
        content_type_id: int | None = None,
        entry_id: int | None = None,
    ) -> dict:
        """Queue an event for every subscriber of *scope*.

        A subscriber whose queue is full is dropped from the scope.
        """
        event = {
            "id": uuid.uuid4().hex,
            "type": event_type.value,
            "content_type_id": content_type_id,
            "entry_id": entry_id,
            "payload": payload or {},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        if not scope:
            logger.debug("Unscoped %s event not delivered", event_type.value)
            return event

        for sub in list(self._scopes.get(scope, {}).values()):
            try:
                sub.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Dropping slow event subscriber %s", sub.id)
                self.unsubscribe(sub)
        return event

    async def stream(self, sub: Subscription) -> AsyncGenerator[str, None]:
        try:
            while True:
                yield sse_frame(await sub.queue.get())
        finally:
            self.unsubscribe(sub)


event_bus = EventBus()

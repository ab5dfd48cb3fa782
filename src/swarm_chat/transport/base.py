"""
Event source contract shared by the SSE and scripted sources.

subscribe(task_id, on_event) -> unsubscribe

- on_event is never called after unsubscribe() returns
- connection errors close the subscription quietly, nothing is raised
- payloads are decoded with parse_event(); undecodable ones are dropped
- unsubscribe() is idempotent
"""

import logging
from typing import Callable

from swarm_chat.models.events import TaskEvent

EventCallback = Callable[[TaskEvent], None]
Unsubscribe = Callable[[], None]

logger = logging.getLogger(__name__)


class EventSource:
    @property
    def open_subscriptions(self) -> int:
        return 0

    def subscribe(self, task_id: str, on_event: EventCallback) -> Unsubscribe:
        raise NotImplementedError

    async def close(self) -> None:
        """Tear down every open subscription."""


class Subscription:
    """One live subscription. Dispatch goes through here so closing is checked once."""

    __slots__ = ("task_id", "_on_event", "_closed", "_on_close")

    def __init__(self, task_id: str, on_event: EventCallback, on_close: Callable[["Subscription"], None]):
        self.task_id = task_id
        self._on_event = on_event
        self._closed = False
        self._on_close = on_close

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: TaskEvent) -> bool:
        if self._closed:
            return False
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Event handler failed for task %s", self.task_id)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close(self)

    def __repr__(self) -> str:
        return f"Subscription(task_id={self.task_id!r}, closed={self._closed})"

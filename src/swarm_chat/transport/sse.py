"""
Server-sent events source for orchestrator task streams.

Connection: GET {events_url}/tasks/events/{task_id}, text/event-stream.
Each `data:` frame carries one JSON task event.
"""

import asyncio
import logging
from typing import Optional

import httpx

from swarm_chat.transport.base import EventCallback, EventSource, Subscription, Unsubscribe
from swarm_chat.transport.envelope import parse_event

logger = logging.getLogger(__name__)

DEFAULT_EVENTS_URL = "http://localhost:3001"


class SSEDecoder:
    """Line-fed text/event-stream decoder. Returns the data of each completed event."""

    def __init__(self) -> None:
        self._data: list[str] = []

    def feed(self, line: str) -> Optional[str]:
        if not line:
            if not self._data:
                return None
            data = "\n".join(self._data)
            self._data = []
            return data
        if line.startswith(":"):
            return None  # comment / keep-alive
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            self._data.append(value)
        return None


class SSEEventSource(EventSource):
    def __init__(
        self,
        events_url: str = DEFAULT_EVENTS_URL,
        api_key: Optional[str] = None,
        connect_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=events_url.rstrip("/"),
            headers=headers,
            # streams stay open for as long as the task runs
            timeout=httpx.Timeout(connect_timeout, read=None),
            transport=transport,
        )
        self._streams: dict[Subscription, asyncio.Task] = {}

    @property
    def open_subscriptions(self) -> int:
        return len(self._streams)

    def subscribe(self, task_id: str, on_event: EventCallback) -> Unsubscribe:
        sub = Subscription(task_id, on_event, self._forget)
        loop = asyncio.get_running_loop()
        self._streams[sub] = loop.create_task(self._stream(sub))
        logger.debug("Subscribed to task %s", task_id)
        return sub.close

    def _forget(self, sub: Subscription) -> None:
        task = self._streams.pop(sub, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        logger.debug("Unsubscribed from task %s", sub.task_id)

    async def _stream(self, sub: Subscription) -> None:
        decoder = SSEDecoder()
        try:
            async with self._client.stream("GET", f"/tasks/events/{sub.task_id}") as resp:
                if resp.status_code >= 400:
                    logger.warning("Event stream for task %s refused: HTTP %s", sub.task_id, resp.status_code)
                    return
                async for line in resp.aiter_lines():
                    data = decoder.feed(line)
                    if data is None:
                        continue
                    event = parse_event(data)
                    if event is None:
                        continue
                    if not sub.deliver(event):
                        return
        except (httpx.HTTPError, httpx.StreamError, httpx.InvalidURL) as e:
            logger.info("Event stream for task %s closed: %s", sub.task_id, e)
        finally:
            sub.close()

    async def close(self) -> None:
        tasks = list(self._streams.values())
        for sub in list(self._streams):
            sub.close()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._client.aclose()

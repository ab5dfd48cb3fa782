"""
AsyncSwarmChat: main client.
"""

import asyncio
from typing import Optional

from swarm_chat.chat import ChatEngine
from swarm_chat.config import ChatConfig
from swarm_chat.errors import ConnectionError
from swarm_chat.models.conversation import Conversation
from swarm_chat.models.message import Message
from swarm_chat.models.payment import OrderResult, PlanCost
from swarm_chat.orchestrator import OrchestrationClient
from swarm_chat.transport.base import EventSource
from swarm_chat.transport.http import HttpClient
from swarm_chat.transport.sse import SSEEventSource
from swarm_chat.view import TranscriptView


class AsyncSwarmChat:
    """Async chat client. One instance drives one transcript view."""

    def __init__(
        self,
        config: Optional[ChatConfig] = None,
        view: Optional[TranscriptView] = None,
        *,
        http: Optional[HttpClient] = None,
        events: Optional[EventSource] = None,
        use_router: bool = True,
    ):
        self.config = config or ChatConfig()
        self.http = http or HttpClient(base_url=self.config.base_url, api_key=self.config.api_key)
        self.orchestrator = OrchestrationClient(self.http)
        self._events = events
        self._view = view
        self._use_router = use_router
        self._engine: Optional[ChatEngine] = None

    @property
    def connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> ChatEngine:
        self._ensure_connected()
        return self._engine  # type: ignore[return-value]

    async def connect(self) -> None:
        """Build the engine on the running loop and fetch the initial credit balance."""
        if self._engine is not None:
            return
        if self._events is None:
            self._events = SSEEventSource(events_url=self.config.events_url, api_key=self.config.api_key)
        self._engine = ChatEngine(
            self.orchestrator,
            self._events,
            self._view,
            typing_interval_s=self.config.typing_interval_s,
            burn_lookup_attempts=self.config.burn_lookup_attempts,
            burn_lookup_backoff_s=self.config.burn_lookup_backoff_s,
            title_max_length=self.config.title_max_length,
            use_router=self._use_router,
        )
        self._engine.credits = await self.orchestrator.get_credits()

    async def aclose(self) -> None:
        if self._engine is not None:
            await self._engine.close()
            self._engine = None
        if self._events is not None:
            await self._events.close()
        await self.http.close()

    async def __aenter__(self) -> "AsyncSwarmChat":
        await self.connect()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    @property
    def messages(self) -> list[Message]:
        return self.engine.messages

    @property
    def credits(self) -> Optional[int]:
        return self.engine.credits

    def conversations(self) -> list[Conversation]:
        return self.engine.conversations()

    async def send(self, content: str) -> Optional[str]:
        """Send a message in the active conversation (a new one if none is active)."""
        return await self.engine.send_message(content)

    def switch(self, conversation_id: Optional[int]) -> None:
        self.engine.set_active(conversation_id)

    def new_conversation(self) -> Conversation:
        return self.engine.start_new()

    async def wait_idle(self) -> None:
        await self.engine.wait_idle()

    async def follow(self, timeout: Optional[float] = None, poll_s: float = 0.25) -> bool:
        """Wait for every open task stream to end, then for the transcript to settle.

        Returns False if the timeout ran out first.
        """
        async def _follow() -> None:
            while self._events is not None and self._events.open_subscriptions > 0:
                await asyncio.sleep(poll_s)
            await self.engine.wait_idle()

        try:
            await asyncio.wait_for(_follow(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def refresh_credits(self) -> Optional[int]:
        credits = await self.orchestrator.get_credits()
        if self._engine is not None and credits is not None:
            self._engine.credits = credits
        return credits

    async def plan_cost(self) -> PlanCost:
        return await self.orchestrator.get_plan_cost()

    async def order_plan(self) -> OrderResult:
        result = await self.orchestrator.order_plan()
        if result.success:
            await self.refresh_credits()
        return result

    def _ensure_connected(self) -> None:
        if self._engine is None:
            raise ConnectionError("Not connected. Call connect() first.")

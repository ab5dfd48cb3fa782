"""
Chat engine: wires the send path, the event stream, reconciliation, and
the typing animation for a single view.

Send path:
  user text -> credit-gate routing -> intent synthesis -> task submission
  -> subscribe to the task's event stream -> burn lookup

Event path:
  task event -> conversation resolved by task id -> reconcile
  -> (active conversation only) typing scheduler -> view

A final answer that finishes its reveal starts a burn lookup; a burn found
there (or right after submission) is reconciled as a user-transaction.
"""

import asyncio
import functools
import logging
from typing import Any, Coroutine, Optional

from swarm_chat.errors import SubmissionError
from swarm_chat.formatting import credits_label
from swarm_chat.models.conversation import Conversation
from swarm_chat.models.events import TaskEvent
from swarm_chat.models.message import Message, MessageKind
from swarm_chat.models.payment import BurnTransaction
from swarm_chat.models.task import RouterAction, RouterDecision
from swarm_chat.orchestrator import History, OrchestrationClient
from swarm_chat.reconciler import MessageReconciler
from swarm_chat.registry import ConversationRegistry
from swarm_chat.transport.base import EventSource
from swarm_chat.typewriter import DEFAULT_INTERVAL_S, PresentationState, TypingScheduler
from swarm_chat.view import TranscriptView

logger = logging.getLogger(__name__)

SUBMISSION_FAILED = "Failed to send the message to the agent. Please try again."
NO_CREDIT_DEFAULT = "You do not have enough credits to continue."


class ChatEngine:
    def __init__(
        self,
        orchestrator: OrchestrationClient,
        events: EventSource,
        view: Optional[TranscriptView] = None,
        *,
        typing_interval_s: float = DEFAULT_INTERVAL_S,
        burn_lookup_attempts: int = 3,
        burn_lookup_backoff_s: float = 2.0,
        title_max_length: int = 30,
        use_router: bool = True,
    ):
        self._orchestrator = orchestrator
        self._events = events
        self.view = view or TranscriptView()
        self.registry = ConversationRegistry()
        self.reconciler = MessageReconciler(self.registry)
        self.scheduler = TypingScheduler(self.view.reveal, self._on_presented, typing_interval_s)
        self.credits: Optional[int] = None
        self._burn_lookup_attempts = burn_lookup_attempts
        self._burn_lookup_backoff_s = burn_lookup_backoff_s
        self._title_max_length = title_max_length
        self._use_router = use_router
        self._from_blocks: dict[int, int] = {}
        self._background: set[asyncio.Task] = set()

    @property
    def active_id(self) -> Optional[int]:
        return self.registry.active_id

    @property
    def messages(self) -> list[Message]:
        """Messages of the active conversation."""
        return self.registry.visible_messages

    def conversations(self) -> list[Conversation]:
        return self.registry.conversations()

    # -- conversation switching -------------------------------------------

    def set_active(self, conversation_id: Optional[int]) -> None:
        """Show another conversation. Its stored messages appear at once, no re-typing."""
        self._interrupt_presentation()
        messages = self.registry.set_active(conversation_id)
        self.view.reset(self.registry.active, list(messages))

    def start_new(self) -> Conversation:
        self._interrupt_presentation()
        conversation = self.registry.start_new()
        self.view.reset(conversation, [])
        self.view.conversations_changed(self.registry.conversations())
        return conversation

    def presentation_complete(self) -> None:
        self.scheduler.presentation_complete()

    def _interrupt_presentation(self) -> None:
        # a final answer cut off mid-reveal still owes its burn lookup
        for message in self.scheduler.cancel():
            if message.is_user or message.kind is not MessageKind.FINAL_ANSWER:
                continue
            from_block = self._from_blocks.get(message.conversation_id)
            if from_block is not None:
                self._spawn(self._lookup_burn(message.conversation_id, from_block))

    # -- send path ---------------------------------------------------------

    async def send_message(self, content: str) -> Optional[str]:
        """Send user text. Returns the remote task id, or None if nothing was submitted."""
        content = content.strip()
        if not content:
            return None
        conversation_id = self._ensure_conversation(content)
        self.registry.mark_live(conversation_id)
        self._present(conversation_id, self.reconciler.append_local(conversation_id, content))
        history = self._history(conversation_id)

        if self._use_router:
            decision = await self._orchestrator.route(content, history)
            if decision.action is not RouterAction.FORWARD:
                await self._handle_gate(conversation_id, decision)
                return None

        query = await self._orchestrator.synthesize_intent(history, fallback=content)
        from_block = await self._orchestrator.latest_block()
        try:
            task_id = await self._orchestrator.submit_task(query)
        except SubmissionError as e:
            logger.error("Task submission failed for conversation %s: %s", conversation_id, e)
            self._notice(conversation_id, MessageKind.ERROR, SUBMISSION_FAILED)
            return None

        self.registry.bind_remote_task(conversation_id, task_id)
        unsubscribe = self._events.subscribe(task_id, functools.partial(self._on_task_event, task_id))
        self.registry.attach_subscription(conversation_id, task_id, unsubscribe)
        logger.info("Conversation %s bound to task %s", conversation_id, task_id)
        if from_block is not None:
            self._from_blocks[conversation_id] = from_block
            self._spawn(self._lookup_burn(conversation_id, from_block))
        return task_id

    def _ensure_conversation(self, content: str) -> int:
        conversation = self.registry.active
        title = self._fallback_title(content)
        if conversation is None:
            conversation = self.registry.create(title)
            self.registry.set_active(conversation.id)
            self.view.reset(conversation, [])
        elif not conversation.title:
            self.registry.retitle(conversation.id, title)
        else:
            return conversation.id
        self.view.conversations_changed(self.registry.conversations())
        self._spawn(self._synthesize_title(conversation.id, content))
        return conversation.id

    def _fallback_title(self, content: str) -> str:
        if len(content) <= self._title_max_length:
            return content
        return content[: self._title_max_length].rstrip() + "..."

    async def _synthesize_title(self, conversation_id: int, content: str) -> None:
        fallback = self.registry.conversation(conversation_id).title
        title = await self._orchestrator.synthesize_title([{"role": "user", "content": content}], fallback)
        if title != fallback:
            self.registry.retitle(conversation_id, title)
            self.view.conversations_changed(self.registry.conversations())

    async def _handle_gate(self, conversation_id: int, decision: RouterDecision) -> None:
        if decision.action is RouterAction.NO_CREDIT:
            self._notice(conversation_id, MessageKind.ERROR, decision.message or NO_CREDIT_DEFAULT)
        elif decision.action is RouterAction.NO_ACTION:
            if decision.message:
                self._notice(conversation_id, MessageKind.ANSWER, decision.message)
        elif decision.action is RouterAction.ORDER_PLAN:
            result = await self._orchestrator.order_plan()
            if not result.success:
                self._notice(conversation_id, MessageKind.ERROR, result.message or "Failed to order credits for plan")
                return
            if result.tx_hash:
                self._notice(conversation_id, MessageKind.TRANSACTION,
                             result.message or "Credits purchased and added to your balance.",
                             transaction_hash=result.tx_hash, credits_consumed=result.credits)
            else:
                self._notice(conversation_id, MessageKind.ANSWER,
                             result.message or "Credits purchased and added to your balance.")
            await self._refresh_credits()

    def _notice(self, conversation_id: int, kind: MessageKind, content: str, **fields: Any) -> Message:
        message = self.reconciler.append_local(conversation_id, content, is_user=False, kind=kind, **fields)
        self._present(conversation_id, message)
        return message

    def _history(self, conversation_id: int) -> History:
        return [
            {"role": "user" if m.is_user else "assistant", "content": m.content, "type": m.kind.value}
            for m in self.registry.messages(conversation_id)
        ]

    # -- event path --------------------------------------------------------

    def _on_task_event(self, task_id: str, event: TaskEvent) -> None:
        conversation_id = self.registry.resolve_task(task_id)
        if conversation_id is None:
            logger.warning("Event for unknown task %s dropped", task_id)
            return
        self._deliver(conversation_id, event)

    def _deliver(self, conversation_id: int, event: TaskEvent) -> None:
        result = self.reconciler.reconcile(conversation_id, event)
        if not result.changed:
            return
        appended = result.appended
        if not self.registry.is_active(conversation_id):
            logger.debug("Conversation %s updated in background", conversation_id)
            # nothing will be revealed, so follow up right away
            if appended.kind is MessageKind.FINAL_ANSWER and conversation_id in self._from_blocks:
                self._spawn(self._lookup_burn(conversation_id, self._from_blocks[conversation_id]))
            return
        if result.superseded is not None:
            self.view.supersede(result.superseded, appended)
            if not self.scheduler.replace(result.superseded, appended):
                # the pending version was already shown in full
                self.scheduler.enqueue(appended, instant=True)
            return
        self.scheduler.enqueue(appended)

    def _present(self, conversation_id: int, message: Message) -> None:
        if self.registry.is_active(conversation_id):
            self.scheduler.enqueue(message)

    # -- side effects ------------------------------------------------------

    def _on_presented(self, message: Message) -> None:
        self.view.complete(message)
        if message.is_user or message.kind is not MessageKind.FINAL_ANSWER:
            return
        from_block = self._from_blocks.get(message.conversation_id)
        if from_block is None:
            return
        self.scheduler.mark(message, PresentationState.AWAITING_SIDE_EFFECT)
        self._spawn(self._lookup_burn(message.conversation_id, from_block, after=message))

    async def _lookup_burn(self, conversation_id: int, from_block: int, after: Optional[Message] = None) -> None:
        try:
            burn = await self._poll_burn(from_block)
            if burn is not None:
                self._deliver(conversation_id, TaskEvent(
                    kind=MessageKind.USER_TRANSACTION,
                    content=self._burn_content(burn),
                    tx_hash=burn.tx_hash,
                    credits=burn.credits,
                    plan_did=burn.plan_did,
                ))
                await self._refresh_credits()
        finally:
            if after is not None:
                self.scheduler.mark(after, PresentationState.DONE)

    async def _poll_burn(self, from_block: int) -> Optional[BurnTransaction]:
        for attempt in range(self._burn_lookup_attempts):
            burn = await self._orchestrator.find_burn_transaction(from_block)
            if burn is not None:
                return burn
            if attempt < self._burn_lookup_attempts - 1:
                await asyncio.sleep(self._burn_lookup_backoff_s)
        logger.debug("No burn transaction found from block %s", from_block)
        return None

    @staticmethod
    def _burn_content(burn: BurnTransaction) -> str:
        label = credits_label(burn.credits)
        return f"{label} burned for this request." if label else "Credits burned for this request."

    async def _refresh_credits(self) -> None:
        credits = await self._orchestrator.get_credits()
        if credits is not None:
            self.credits = credits

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background step failed: %r", task.exception())

    # -- lifecycle ---------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait until the animation queue and every follow-up lookup have finished."""
        while True:
            await self.scheduler.wait_idle()
            pending = {t for t in self._background if not t.done()}
            if not pending:
                return
            await asyncio.wait(pending)

    async def close(self) -> None:
        self.scheduler.cancel()
        self.registry.close()
        pending = list(self._background)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

"""
Conversation registry.

Owns conversationId -> (conversation, stored messages, open subscriptions)
and the single "active conversation" pointer shown in the view.

Stored lists are canonical for every conversation, active or not, so the
outgoing conversation's snapshot is simply its stored list. Once a task id is
bound, events are addressed by task identity, never by whichever
conversation happens to be active.
"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Optional

from swarm_chat.errors import RegistryError
from swarm_chat.models.conversation import Conversation
from swarm_chat.models.message import Message
from swarm_chat.transport.base import Unsubscribe

logger = logging.getLogger(__name__)


class _Slot:
    __slots__ = ("conversation", "messages", "subscriptions")

    def __init__(self, conversation: Conversation):
        self.conversation = conversation
        self.messages: list[Message] = []
        self.subscriptions: dict[str, Unsubscribe] = {}


class ConversationRegistry:
    def __init__(self) -> None:
        self._slots: dict[int, _Slot] = {}
        self._task_index: dict[str, int] = {}
        self._ids = itertools.count(1)
        self._active_id: Optional[int] = None

    @property
    def active_id(self) -> Optional[int]:
        return self._active_id

    @property
    def active(self) -> Optional[Conversation]:
        if self._active_id is None:
            return None
        return self._slots[self._active_id].conversation

    @property
    def visible_messages(self) -> list[Message]:
        if self._active_id is None:
            return []
        return self._slots[self._active_id].messages

    def is_active(self, conversation_id: int) -> bool:
        return self._active_id is not None and self._active_id == conversation_id

    def create(self, title: str = "") -> Conversation:
        """Allocate a conversation without activating it."""
        conversation = Conversation(id=next(self._ids), title=title, created_at=datetime.now(timezone.utc))
        self._slots[conversation.id] = _Slot(conversation)
        return conversation

    def start_new(self, title: str = "") -> Conversation:
        conversation = self.create(title)
        self.set_active(conversation.id)
        return conversation

    def set_active(self, conversation_id: Optional[int]) -> list[Message]:
        """Switch the view to conversation_id (None = fresh, unsaved thread).

        The outgoing conversation keeps its subscriptions; only its right to
        write into the visible list goes away. Returns the incoming list.
        """
        if conversation_id is not None and conversation_id not in self._slots:
            raise RegistryError(f"Unknown conversation {conversation_id}", code="unknown_conversation")
        previous = self._active_id
        self._active_id = conversation_id
        if conversation_id is None:
            return []
        slot = self._slots[conversation_id]
        if conversation_id != previous and slot.messages:
            slot.conversation.is_restored_from_history = True
        return slot.messages

    def mark_live(self, conversation_id: int) -> None:
        """The user is writing into this conversation again; stop treating it as restored."""
        self._slot(conversation_id).conversation.is_restored_from_history = False

    def conversation(self, conversation_id: int) -> Conversation:
        return self._slot(conversation_id).conversation

    def conversations(self) -> list[Conversation]:
        """All conversations, most recent first."""
        return sorted(
            (slot.conversation for slot in self._slots.values()),
            key=lambda c: (c.created_at, c.id),
            reverse=True,
        )

    def messages(self, conversation_id: int) -> list[Message]:
        return self._slot(conversation_id).messages

    def store_messages(self, conversation_id: int, messages: list[Message]) -> None:
        """Replace the stored list. Only the reconciler calls this."""
        self._slot(conversation_id).messages = messages

    def retitle(self, conversation_id: int, title: str) -> None:
        self._slot(conversation_id).conversation.title = title

    def bind_remote_task(self, conversation_id: int, remote_task_id: str) -> None:
        slot = self._slot(conversation_id)
        slot.conversation.remote_task_id = remote_task_id
        self._task_index[remote_task_id] = conversation_id

    def resolve_task(self, remote_task_id: str) -> Optional[int]:
        return self._task_index.get(remote_task_id)

    def attach_subscription(self, conversation_id: int, remote_task_id: str, unsubscribe: Unsubscribe) -> None:
        slot = self._slot(conversation_id)
        old = slot.subscriptions.pop(remote_task_id, None)
        if old is not None:
            old()
        slot.subscriptions[remote_task_id] = unsubscribe

    def subscription_count(self, conversation_id: int) -> int:
        return len(self._slot(conversation_id).subscriptions)

    def close(self, conversation_id: Optional[int] = None) -> None:
        """Unsubscribe every stream of one conversation, or of all of them."""
        slots = self._slots.values() if conversation_id is None else [self._slot(conversation_id)]
        for slot in slots:
            for task_id, unsubscribe in list(slot.subscriptions.items()):
                unsubscribe()
                logger.debug("Closed subscription for task %s", task_id)
            slot.subscriptions.clear()

    def _slot(self, conversation_id: int) -> _Slot:
        try:
            return self._slots[conversation_id]
        except KeyError:
            raise RegistryError(f"Unknown conversation {conversation_id}", code="unknown_conversation") from None

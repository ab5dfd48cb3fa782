"""
Message reconciler: the single writer of stored conversation lists.

Rules for an incoming agent event, in order:
1. exact duplicate on (content, kind, transaction_hash), or a pending event
   whose final version is already stored -> dropped
2. final event whose (content, kind) matches a pending message -> the pending
   message is removed and the final one appended at the end
3. anything else is appended

Applying the same event twice is a no-op after the first time.
"""

import logging
from typing import NamedTuple, Optional

from swarm_chat.models.events import TaskEvent
from swarm_chat.models.message import Message, MessageKind
from swarm_chat.registry import ConversationRegistry
from swarm_chat.transport.envelope import RawEvent, parse_event

logger = logging.getLogger(__name__)


class Reconciliation(NamedTuple):
    messages: list[Message]
    appended: Optional[Message] = None
    superseded: Optional[Message] = None

    @property
    def changed(self) -> bool:
        return self.appended is not None


def _next_id(messages: list[Message]) -> int:
    return max((m.id for m in messages), default=0) + 1


class MessageReconciler:
    def __init__(self, registry: ConversationRegistry):
        self._registry = registry

    def apply_event(self, conversation_id: int, raw: RawEvent) -> list[Message]:
        """Reconcile one event and return the list. Same object back means nothing changed."""
        return self.reconcile(conversation_id, raw).messages

    def reconcile(self, conversation_id: int, raw: RawEvent) -> Reconciliation:
        current = self._registry.messages(conversation_id)
        event = parse_event(raw)
        if event is None:
            return Reconciliation(current)

        candidate = self._to_message(conversation_id, _next_id(current), event)
        superseded: Optional[Message] = None
        for existing in current:
            if existing.is_user or existing.kind != candidate.kind or existing.content != candidate.content:
                continue
            # a late pending copy of an already-final message is stale
            stale = existing.is_final and not candidate.is_final
            if stale or existing.transaction_hash == candidate.transaction_hash:
                logger.debug("Duplicate %s event in conversation %s dropped", candidate.kind.value, conversation_id)
                return Reconciliation(current)
            if candidate.is_final and not existing.is_final and superseded is None:
                superseded = existing

        if superseded is not None:
            updated = [m for m in current if m is not superseded]
            updated.append(candidate)
        else:
            updated = current + [candidate]
        self._registry.store_messages(conversation_id, updated)
        return Reconciliation(updated, candidate, superseded)

    def append_local(
        self,
        conversation_id: int,
        content: str,
        *,
        is_user: bool = True,
        kind: MessageKind = MessageKind.ANSWER,
        transaction_hash: Optional[str] = None,
        credits_consumed: Optional[float] = None,
    ) -> Message:
        """Append a locally authored message (user input, in-band notice). Never deduplicated."""
        current = self._registry.messages(conversation_id)
        message = Message(
            id=_next_id(current),
            conversation_id=conversation_id,
            is_user=is_user,
            kind=kind,
            content=content,
            transaction_hash=transaction_hash,
            credits_consumed=credits_consumed,
        )
        self._registry.store_messages(conversation_id, current + [message])
        return message

    @staticmethod
    def _to_message(conversation_id: int, message_id: int, event: TaskEvent) -> Message:
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            is_user=False,
            kind=event.kind,
            content=event.content,
            transaction_hash=event.tx_hash,
            credits_consumed=event.credits,
            plan_id=event.plan_did,
            attachments=event.artifacts,
        )

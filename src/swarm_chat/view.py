"""
Transcript view contract.

The engine drives a single view: reset() when the active conversation
changes, reveal() for every step of a typing animation, complete() when a
message is fully shown, supersede() when a pending message is replaced by its
final version. All methods default to no-ops.
"""

from typing import Optional

from swarm_chat.models.conversation import Conversation
from swarm_chat.models.message import Message


class TranscriptView:
    def reset(self, conversation: Optional[Conversation], messages: list[Message]) -> None:
        """Show `messages` in full, without animation."""

    def reveal(self, message: Message, visible: str) -> None:
        """`visible` is the prefix of message.content shown so far."""

    def complete(self, message: Message) -> None:
        pass

    def supersede(self, old: Message, new: Message) -> None:
        pass

    def conversations_changed(self, conversations: list[Conversation]) -> None:
        pass

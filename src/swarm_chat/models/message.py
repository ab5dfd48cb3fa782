"""
Transcript message models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MessageKind(str, Enum):
    REASONING = "reasoning"
    ANSWER = "answer"
    FINAL_ANSWER = "final-answer"
    TRANSACTION = "transaction"
    USER_TRANSACTION = "user-transaction"
    AGENT_TRANSACTION = "agent-transaction"
    ERROR = "error"
    WARNING = "warning"
    AGENT_CALL = "agent-call"
    COST_INFO = "cost-info"

    @classmethod
    def from_wire(cls, tag: Optional[str]) -> "MessageKind":
        """Map an orchestrator `type` tag to a kind. Unknown tags become ANSWER."""
        if not tag:
            return cls.ANSWER
        try:
            return cls(tag)
        except ValueError:
            return WIRE_ALIASES.get(tag, cls.ANSWER)


# Spellings used on the orchestrator wire
WIRE_ALIASES = {
    "nvm-transaction-user": MessageKind.USER_TRANSACTION,
    "nvm-transaction-agent": MessageKind.AGENT_TRANSACTION,
    "callAgent": MessageKind.AGENT_CALL,
    "usd-info": MessageKind.COST_INFO,
}

TRANSACTION_KINDS = {
    MessageKind.TRANSACTION,
    MessageKind.USER_TRANSACTION,
    MessageKind.AGENT_TRANSACTION,
}


class Attachments(BaseModel):
    """Media payload: a mime type and an ordered list of resource locators."""
    mime_type: str = Field(alias="mimeType")
    parts: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "frozen": True}

    @property
    def media_type(self) -> Optional[str]:
        for prefix, media in (("audio/", "audio"), ("video/", "video"),
                              ("text/", "text"), ("image/", "images")):
            if self.mime_type.startswith(prefix):
                return media
        return None


class Message(BaseModel):
    id: int
    conversation_id: int
    is_user: bool
    kind: MessageKind
    content: str
    transaction_hash: Optional[str] = None
    credits_consumed: Optional[float] = None
    plan_id: Optional[str] = None
    attachments: Optional[Attachments] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @property
    def is_final(self) -> bool:
        return self.transaction_hash is not None

    @property
    def key(self) -> tuple[int, int]:
        return (self.conversation_id, self.id)

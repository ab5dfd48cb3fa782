"""
Task event models: records pushed by the orchestrator event stream.

Wire shape: {"content": str, "type": str, "txHash"?, "credits"?, "planDid"?,
"artifacts"?: {"mimeType": str, "parts": [str]}}
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from swarm_chat.models.message import Attachments, MessageKind


class WireEvent(BaseModel):
    """Raw record as it arrives. Only `content` is required."""
    content: str
    type: Optional[str] = None
    tx_hash: Optional[str] = Field(default=None, alias="txHash")
    credits: Optional[float] = None
    plan_did: Optional[str] = Field(default=None, alias="planDid")
    artifacts: Optional[Attachments] = None

    model_config = {"populate_by_name": True}

    # A malformed optional field is dropped on its own; the event survives.
    @field_validator("type", "tx_hash", "plan_did", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @field_validator("credits", mode="before")
    @classmethod
    def _number_or_none(cls, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("artifacts", mode="before")
    @classmethod
    def _attachments_or_none(cls, value: Any) -> Optional[Attachments]:
        if value is None or isinstance(value, Attachments):
            return value
        try:
            return Attachments.model_validate(value)
        except ValidationError:
            return None


class TaskEvent(BaseModel):
    """Decoded event, tagged by a closed MessageKind."""
    kind: MessageKind
    content: str
    tx_hash: Optional[str] = None
    credits: Optional[float] = None
    plan_did: Optional[str] = None
    artifacts: Optional[Attachments] = None

    model_config = {"frozen": True}

    @classmethod
    def from_wire(cls, wire: WireEvent) -> "TaskEvent":
        return cls(
            kind=MessageKind.from_wire(wire.type),
            content=wire.content,
            tx_hash=wire.tx_hash or None,
            credits=wire.credits,
            plan_did=wire.plan_did,
            artifacts=wire.artifacts,
        )

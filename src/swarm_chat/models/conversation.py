"""
Conversation model.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class Conversation(BaseModel):
    id: int
    title: str = ""
    remote_task_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_restored_from_history: bool = False

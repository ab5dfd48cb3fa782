"""
Task submission and routing models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskRef(BaseModel):
    task_id: str


class TaskCreated(BaseModel):
    """POST /api/orchestrator-task response"""
    task: TaskRef
    plan_did: Optional[str] = Field(default=None, alias="planDid")

    model_config = {"populate_by_name": True}


class RouterAction(str, Enum):
    FORWARD = "forward"
    NO_CREDIT = "no_credit"
    ORDER_PLAN = "order_plan"
    NO_ACTION = "no_action"


class RouterDecision(BaseModel):
    """POST /api/llm-router response. What to do with a message before the agent sees it."""
    action: RouterAction = RouterAction.FORWARD
    message: str = ""

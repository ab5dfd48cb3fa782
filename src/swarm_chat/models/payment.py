"""
Payment/credit models: burn lookup, credit balance, plan purchase.
"""

from typing import Optional

from pydantic import BaseModel, Field


class BurnTransaction(BaseModel):
    """GET /api/find-burn-tx result when a burn was found."""
    tx_hash: str = Field(alias="txHash")
    credits: Optional[int] = None
    plan_did: Optional[str] = Field(default=None, alias="planDid")

    model_config = {"populate_by_name": True}


class PlanCost(BaseModel):
    """GET /api/plan/cost"""
    plan_price: str = Field(default="0", alias="planPrice")
    plan_credits: int = Field(default=0, alias="planCredits")

    model_config = {"populate_by_name": True}


class OrderResult(BaseModel):
    """POST /api/order-plan"""
    success: bool = False
    tx_hash: Optional[str] = Field(default=None, alias="txHash")
    credits: Optional[int] = None
    message: str = ""

    model_config = {"populate_by_name": True}

"""
Orchestration client: task submission, burn lookup, credits and the
LLM-backed helpers (credit-gate routing, title and intent synthesis).

Only submit_task() raises. Every helper falls back to a safe local value
when the backend call fails.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from swarm_chat.errors import SubmissionError, SwarmChatError
from swarm_chat.models.payment import BurnTransaction, OrderResult, PlanCost
from swarm_chat.models.task import RouterAction, RouterDecision, TaskCreated
from swarm_chat.transport.http import HttpClient

logger = logging.getLogger(__name__)

History = list[dict[str, Any]]

# Everything a collaborator call can fail with that should turn into a fallback
CALL_ERRORS = (SwarmChatError, httpx.HTTPError, ValidationError, ValueError)


class OrchestrationClient:
    def __init__(self, http: HttpClient):
        self._http = http

    async def submit_task(self, query: str) -> str:
        """Create a remote task and return its id."""
        try:
            result = await self._http.post("/api/orchestrator-task", {"input_query": query})
            return TaskCreated.model_validate(result).task.task_id
        except Exception as e:
            raise SubmissionError(f"Failed to send message to orchestrator: {e}") from e

    async def latest_block(self) -> Optional[int]:
        """Current block number, used as the lower bound of burn lookups."""
        try:
            result = await self._http.get("/api/latest-block")
            return int(result["blockNumber"])
        except (*CALL_ERRORS, KeyError, TypeError) as e:
            logger.warning("Could not read latest block: %s", e)
            return None

    async def find_burn_transaction(self, from_block: int) -> Optional[BurnTransaction]:
        """One burn lookup. "Not found" (404 or an empty body) is a normal None."""
        try:
            result = await self._http.get("/api/find-burn-tx", params={"fromBlock": from_block})
        except SwarmChatError as e:
            if (e.details or {}).get("status_code") != 404:
                logger.warning("Burn lookup failed: %s", e)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Burn lookup failed: %s", e)
            return None
        if not isinstance(result, dict) or not result.get("txHash"):
            return None
        try:
            return BurnTransaction.model_validate(result)
        except ValidationError as e:
            logger.warning("Unexpected burn lookup payload: %s", e)
            return None

    async def get_credits(self) -> Optional[int]:
        """Credit balance of the configured plan, None if unknown."""
        try:
            result = await self._http.get("/api/credit")
        except CALL_ERRORS as e:
            logger.warning("Could not fetch credits: %s", e)
            return None
        credit = result.get("credit") if isinstance(result, dict) else None
        return credit if isinstance(credit, int) else None

    async def get_plan_cost(self) -> PlanCost:
        return PlanCost.model_validate(await self._http.get("/api/plan/cost"))

    async def order_plan(self) -> OrderResult:
        """Purchase credits for the agent plan. Failures come back as success=False."""
        try:
            return OrderResult.model_validate(await self._http.post("/api/order-plan"))
        except CALL_ERRORS as e:
            logger.warning("Plan order failed: %s", e)
            return OrderResult(success=False, message="Failed to order credits for plan")

    async def route(self, message: str, history: History) -> RouterDecision:
        """Credit-gate routing. Any failure means forward."""
        try:
            result = await self._http.post("/api/llm-router", {"message": message, "history": history})
            return RouterDecision.model_validate(result)
        except CALL_ERRORS as e:
            logger.warning("LLM router unavailable, forwarding: %s", e)
            return RouterDecision(action=RouterAction.FORWARD)

    async def synthesize_title(self, history: History, fallback: str) -> str:
        try:
            result = await self._http.post("/api/title/summarize", {"history": history})
        except CALL_ERRORS as e:
            logger.warning("Title synthesis failed: %s", e)
            return fallback
        title = result.get("title") if isinstance(result, dict) else None
        return title.strip() if isinstance(title, str) and title.strip() else fallback

    async def synthesize_intent(self, history: History, fallback: str) -> str:
        try:
            result = await self._http.post("/api/intent/synthesize", {"history": history})
        except CALL_ERRORS as e:
            logger.warning("Intent synthesis failed: %s", e)
            return fallback
        intent = result.get("intent") if isinstance(result, dict) else None
        return intent.strip() if isinstance(intent, str) and intent.strip() else fallback

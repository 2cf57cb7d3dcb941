"""Gmail chat agent.

Runs one chat message through resolve, plan, execute and format stages built
as RunnableLambda steps, tracing every stage as a StepLog entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from langchain_core.runnables import RunnableLambda

from mailbot.agents.base import Agent, AgentResult
from mailbot.agents.executor import FallbackExecutor
from mailbot.agents.extractor import NormalizedListing, NormalizedRecord, normalize
from mailbot.agents.formatter import (
    OUTCOME_FAILED,
    OUTCOME_SUCCESS,
    OUTCOME_UNSUPPORTED,
    format_clarification,
    format_failure,
    format_no_target,
    format_reply,
)
from mailbot.agents.intent_resolver import Intent, IntentResolver
from mailbot.agents.operation_table import CATEGORY_NONE
from mailbot.agents.planner import ExecutionPlan, ExecutionPlanner
from mailbot.exceptions import DependentPreconditionError, ToolValidationError
from mailbot.schemas import StepLog
from mailbot.services.tool_client import RemoteResult

logger = logging.getLogger(__name__)

DEFAULT_NONE_REPLY = (
    "I can help with Gmail tasks like sending, listing, searching, replying to, "
    "labelling, or deleting emails."
)


@dataclass
class GmailAgentConfig:
    fetch_max_results: int = 10
    search_max_results: int = 5


class GmailChatPipeline:
    """Chat pipeline composed of async RunnableLambda stages.

    Stages read and extend a plain state dict. A stage that produces the final
    ``answer`` short-circuits the rest of the pipeline.
    """

    def __init__(
        self,
        *,
        resolver: IntentResolver,
        planner: ExecutionPlanner,
        executor: FallbackExecutor,
    ) -> None:
        self._resolver = resolver
        self._planner = planner
        self._executor = executor

        self.resolve = RunnableLambda(self._resolve_stage).with_config(run_name="ResolveIntent")
        self.plan = RunnableLambda(self._plan_stage).with_config(run_name="PlanExecution")
        self.execute_primary = RunnableLambda(self._execute_primary_stage).with_config(
            run_name="ExecutePrimary",
        )
        self.execute_dependent = RunnableLambda(self._execute_dependent_stage).with_config(
            run_name="ExecuteDependent",
        )
        self.format = RunnableLambda(self._format_stage).with_config(run_name="FormatReply")

    @staticmethod
    def _apply(state: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
        merged = dict(state)
        new_steps = updates.pop("steps", [])
        merged.update(updates)
        merged["steps"] = merged.get("steps", []) + new_steps
        return merged

    async def ainvoke(self, state: dict[str, Any]) -> dict[str, Any]:
        state = self._apply(state, await self.resolve.ainvoke(state))
        if "answer" in state:
            return state

        state = self._apply(state, await self.plan.ainvoke(state))
        state = self._apply(state, await self.execute_primary.ainvoke(state))
        if "answer" in state:
            return state

        if state["plan"].dependent is not None:
            state = self._apply(state, await self.execute_dependent.ainvoke(state))
            if "answer" in state:
                return state

        return self._apply(state, await self.format.ainvoke(state))

    # -- stages -------------------------------------------------------------------

    async def _resolve_stage(self, state: dict[str, Any]) -> dict[str, Any]:
        intent, steps = await self._resolver.aresolve(state["message"], state["principal"])
        updates: dict[str, Any] = {"intent": intent, "steps": steps}
        if intent.category == CATEGORY_NONE:
            updates["answer"] = intent.reply or DEFAULT_NONE_REPLY
        elif intent.missing_entity:
            updates["answer"] = format_clarification(intent.category, intent.missing_entity)
        return updates

    async def _plan_stage(self, state: dict[str, Any]) -> dict[str, Any]:
        intent: Intent = state["intent"]
        plan = self._planner.plan(intent)
        return {
            "plan": plan,
            "steps": [
                StepLog(
                    module="gmail_agent.plan",
                    prompt={"category": intent.category},
                    response={
                        "operations": [c.operation_id for c in plan.primary.candidates],
                        "query": plan.query,
                        "dependent": plan.dependent is not None,
                    },
                )
            ],
        }

    async def _run_step(self, module: str, step: Any, principal: str) -> tuple[RemoteResult, StepLog]:
        try:
            result = await self._executor.execute(step, principal)
        except ToolValidationError as exc:
            logger.warning("Validation error from %s: %s", exc.operation_id, exc)
            result = RemoteResult(successful=False, error=str(exc), operation_id=exc.operation_id, attempts=1)
        log = StepLog(
            module=module,
            prompt={"arguments": dict(step.arguments), "candidates": len(step.candidates)},
            response={
                "successful": result.successful,
                "operation": result.operation_id,
                "attempts": result.attempts,
                "error": result.error,
            },
        )
        return result, log

    async def _execute_primary_stage(self, state: dict[str, Any]) -> dict[str, Any]:
        plan: ExecutionPlan = state["plan"]
        result, log = await self._run_step("gmail_agent.execute_primary", plan.primary, state["principal"])
        updates: dict[str, Any] = {"primary_result": result, "steps": [log]}
        if not result.successful:
            updates["answer"] = format_failure(result.error)
            updates["tool_result"] = result.to_dict()
            return updates

        listing = normalize(result, plan.shape_hint)
        updates["listing"] = listing
        if plan.dependent is not None and listing.total == 0:
            updates["answer"] = format_no_target(plan.category)
            updates["tool_result"] = result.to_dict()
        return updates

    async def _execute_dependent_stage(self, state: dict[str, Any]) -> dict[str, Any]:
        plan: ExecutionPlan = state["plan"]
        listing: NormalizedListing = state["listing"]
        target = listing.first
        try:
            step = plan.dependent(target)
        except DependentPreconditionError as exc:
            return {
                "answer": f"❌ {exc}",
                "tool_result": state["primary_result"].to_dict(),
                "steps": [
                    StepLog(
                        module="gmail_agent.execute_dependent",
                        prompt={"target": None},
                        response={"status": "skipped", "reason": str(exc)},
                    )
                ],
            }

        result, log = await self._run_step("gmail_agent.execute_dependent", step, state["principal"])
        log.prompt["target"] = target.identifier
        if result.successful:
            outcome = OUTCOME_SUCCESS
        elif plan.partial_on_exhaustion:
            outcome = OUTCOME_UNSUPPORTED
        else:
            outcome = OUTCOME_FAILED
        log.response["outcome"] = outcome
        return {"target": target, "dependent_result": result, "outcome": outcome, "steps": [log]}

    async def _format_stage(self, state: dict[str, Any]) -> dict[str, Any]:
        intent: Intent = state["intent"]
        plan: ExecutionPlan = state["plan"]
        result: RemoteResult = state.get("dependent_result") or state["primary_result"]
        outcome = state.get("outcome", OUTCOME_SUCCESS)
        target: NormalizedRecord | None = state.get("target")

        answer = format_reply(
            plan.category,
            listing=state.get("listing"),
            outcome=outcome,
            target=target,
            entities=intent.entities,
            query=plan.query,
            error=result.error,
        )
        tool_result = result.to_dict()
        tool_result["outcome"] = outcome
        if target is not None:
            tool_result["target"] = {
                "identifier": target.identifier,
                "sender": target.sender,
                "subject": target.subject,
            }
        return {
            "answer": answer,
            "tool_result": tool_result,
            "steps": [
                StepLog(
                    module="gmail_agent.format",
                    prompt={"category": plan.category, "outcome": outcome},
                    response={"reply_preview": answer[:120]},
                )
            ],
        }


class GmailAgent(Agent):
    """Agent facade over :class:`GmailChatPipeline`."""

    name = "gmail_agent"

    def __init__(
        self,
        *,
        tool_client: Any,
        resolver: IntentResolver,
        config: GmailAgentConfig | None = None,
    ) -> None:
        self._config = config or GmailAgentConfig()
        self._pipeline = GmailChatPipeline(
            resolver=resolver,
            planner=ExecutionPlanner(
                fetch_max_results=self._config.fetch_max_results,
                search_max_results=self._config.search_max_results,
            ),
            executor=FallbackExecutor(tool_client),
        )

    async def run(self, prompt: str, context: dict[str, object] | None = None) -> AgentResult:
        principal = str((context or {}).get("principal") or "")
        state = await self._pipeline.ainvoke({"message": prompt, "principal": principal, "steps": []})
        logger.info(
            "gmail_agent finished: principal=%s category=%s",
            principal,
            getattr(state.get("intent"), "category", None),
        )
        return AgentResult(
            response=state["answer"],
            steps=state.get("steps", []),
            tool_result=state.get("tool_result"),
        )

"""Sequential candidate fallback over the remote tool client."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from mailbot.agents.planner import ExecutionStep
from mailbot.exceptions import ToolNotFoundError
from mailbot.services.tool_client import RemoteResult

logger = logging.getLogger(__name__)


class _ToolRunner(Protocol):
    async def execute(self, operation_id: str, principal: str, arguments: dict[str, Any]) -> RemoteResult: ...


class FallbackExecutor:
    """Tries each candidate of a step in order until one succeeds.

    Every candidate is attempted at most once, so a step with N candidates
    makes at most N remote calls. Unknown operations and reported failures
    advance to the next candidate.
    Validation and transport errors propagate to the caller untouched.
    """

    def __init__(self, tool_client: _ToolRunner) -> None:
        self._tool_client = tool_client

    async def execute(self, step: ExecutionStep, principal: str) -> RemoteResult:
        attempts = 0
        last_error: str | None = None
        last_operation: str | None = None

        for candidate in step.candidates:
            arguments = candidate.build_arguments(step.arguments)
            attempts += 1
            last_operation = candidate.operation_id
            try:
                result = await self._tool_client.execute(candidate.operation_id, principal, arguments)
            except ToolNotFoundError as exc:
                logger.warning("Operation %s not available, trying next candidate", candidate.operation_id)
                last_error = str(exc)
                continue

            result.attempts = attempts
            if result.successful:
                logger.info("Operation %s succeeded after %s attempt(s)", candidate.operation_id, attempts)
                return result
            logger.warning(
                "Operation %s reported failure, trying next candidate: %s",
                candidate.operation_id,
                result.error,
            )
            last_error = result.error or f"{candidate.operation_id} reported failure"

        return RemoteResult(
            successful=False,
            error=last_error or "All candidate operations failed",
            operation_id=last_operation,
            attempts=attempts,
        )

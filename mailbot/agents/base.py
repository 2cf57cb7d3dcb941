"""Base agent interfaces and shared result types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mailbot.schemas import StepLog


@dataclass
class AgentResult:
    """Standard output returned by chat agents."""

    response: str
    steps: list[StepLog]
    tool_result: dict[str, Any] | None = None  # Set when a remote operation was attempted


class Agent:
    """Minimal interface that chat agents implement."""

    name: str

    async def run(self, prompt: str, context: dict[str, object] | None = None) -> AgentResult:
        """Execute an agent with prompt and optional structured context."""

        raise NotImplementedError

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

import pytest

from mailbot.agents.executor import FallbackExecutor
from mailbot.agents.operation_table import candidates_for
from mailbot.agents.planner import ExecutionStep
from mailbot.exceptions import (
    PlanContractError,
    ToolNotFoundError,
    ToolTransportError,
    ToolValidationError,
)
from mailbot.services.tool_client import RemoteResult


@dataclass
class ScriptedToolClient:
    """Returns scripted outcomes per operation id; unscripted operations report failure."""

    outcomes: dict[str, Any] = field(default_factory=dict)
    calls: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)

    async def execute(self, operation_id: str, principal: str, arguments: dict[str, Any]) -> RemoteResult:
        self.calls.append((operation_id, principal, arguments))
        outcome = self.outcomes.get(operation_id)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return RemoteResult(successful=False, error=f"{operation_id} failed", operation_id=operation_id)
        return outcome


def _delete_step() -> ExecutionStep:
    return ExecutionStep(candidates=candidates_for("delete"), arguments={"message_id": "m1"})


def test_step_requires_candidates() -> None:
    with pytest.raises(PlanContractError):
        ExecutionStep(candidates=(), arguments={})


def test_first_success_stops_the_loop() -> None:
    client = ScriptedToolClient(
        outcomes={"GMAIL_MOVE_TO_TRASH": RemoteResult(successful=True, data={"id": "m1"})}
    )
    result = asyncio.run(FallbackExecutor(client).execute(_delete_step(), "me@x.com"))

    assert result.successful is True
    assert result.attempts == 1
    assert client.calls == [("GMAIL_MOVE_TO_TRASH", "me@x.com", {"message_id": "m1"})]


def test_all_candidates_failing_makes_exactly_n_attempts() -> None:
    client = ScriptedToolClient()
    step = _delete_step()
    result = asyncio.run(FallbackExecutor(client).execute(step, "me@x.com"))

    assert len(client.calls) == len(step.candidates) == 16
    assert result.successful is False
    assert result.attempts == 16
    assert result.error == "GMAIL_MODIFY_LABELS failed"
    assert client.calls[-1] == ("GMAIL_MODIFY_LABELS", "me@x.com", {"gmail_id": "m1", "remove_labels": ["INBOX"]})


def test_not_found_advances_to_next_candidate() -> None:
    client = ScriptedToolClient(
        outcomes={
            "GMAIL_MOVE_TO_TRASH": ToolNotFoundError("missing", operation_id="GMAIL_MOVE_TO_TRASH"),
            "GMAIL_TRASH_EMAIL": RemoteResult(successful=True, data={}),
        }
    )
    result = asyncio.run(FallbackExecutor(client).execute(_delete_step(), "me@x.com"))

    assert result.successful is True
    assert result.attempts == 3
    assert [call[0] for call in client.calls] == ["GMAIL_MOVE_TO_TRASH", "GMAIL_MOVE_TO_TRASH", "GMAIL_TRASH_EMAIL"]
    assert client.calls[1][2] == {"gmail_id": "m1"}


def test_validation_error_surfaces_immediately() -> None:
    client = ScriptedToolClient(outcomes={"GMAIL_MOVE_TO_TRASH": ToolValidationError("bad id")})
    with pytest.raises(ToolValidationError):
        asyncio.run(FallbackExecutor(client).execute(_delete_step(), "me@x.com"))
    assert len(client.calls) == 1


def test_transport_error_is_not_retried() -> None:
    client = ScriptedToolClient(outcomes={"GMAIL_MOVE_TO_TRASH": ToolTransportError("timeout")})
    with pytest.raises(ToolTransportError):
        asyncio.run(FallbackExecutor(client).execute(_delete_step(), "me@x.com"))
    assert len(client.calls) == 1


def test_every_candidate_is_attempted_exactly_once() -> None:
    client = ScriptedToolClient()
    # A raw step keeps all label case variants, even ones that build identical calls.
    step = ExecutionStep(candidates=candidates_for("add_label"), arguments={"message_id": "m1", "label": "UNREAD"})
    result = asyncio.run(FallbackExecutor(client).execute(step, "me@x.com"))

    assert len(client.calls) == len(step.candidates) == 4
    assert result.attempts == 4


@dataclass
class _SucceedsOnArguments(ScriptedToolClient):
    winning_call: tuple[str, dict[str, Any]] = ("", {})

    async def execute(self, operation_id: str, principal: str, arguments: dict[str, Any]) -> RemoteResult:
        if (operation_id, arguments) == self.winning_call:
            self.calls.append((operation_id, principal, arguments))
            return RemoteResult(successful=True, data={"archived": True}, operation_id=operation_id)
        return await super().execute(operation_id, principal, arguments)


def test_only_last_candidate_succeeding_returns_that_result() -> None:
    client = _SucceedsOnArguments(
        winning_call=("GMAIL_MODIFY_LABELS", {"gmail_id": "m1", "remove_labels": ["INBOX"]})
    )
    step = _delete_step()

    result = asyncio.run(FallbackExecutor(client).execute(step, "me@x.com"))

    assert result.successful is True
    assert result.data == {"archived": True}
    assert result.attempts == len(step.candidates) == 16
    assert len(client.calls) == 16

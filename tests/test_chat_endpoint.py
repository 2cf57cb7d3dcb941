from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace

from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

import mailbot.main as main_module
from mailbot.agents.base import AgentResult
from mailbot.exceptions import ToolTransportError
from mailbot.schemas import ChatRequest, ChatResponse, StepLog
from mailbot.services.tool_client import RemoteTool


class _DummyAgent:
    def __init__(self, *, result: AgentResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, dict[str, object] | None]] = []

    async def run(self, prompt: str, context: dict[str, object] | None = None) -> AgentResult:
        self.calls.append((prompt, context))
        if self.error is not None:
            raise self.error
        return self.result


class _DummyToolClient:
    def __init__(self, tools: list[RemoteTool] | None = None, error: Exception | None = None) -> None:
        self.tools = tools or []
        self.error = error

    async def list_tools(self, principal: str) -> list[RemoteTool]:
        if self.error is not None:
            raise self.error
        return self.tools


def _request(path: str) -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": path,
            "query_string": b"",
            "headers": [],
            "scheme": "http",
            "server": ("testserver", 80),
        }
    )


def test_health() -> None:
    response = main_module.health()
    assert response.status == "OK"
    assert response.timestamp


def test_chat_request_accepts_user_id_alias() -> None:
    payload = ChatRequest.model_validate({"userId": "me@x.com", "message": "hi"})
    assert payload.principal == "me@x.com"


def test_chat_passes_principal_and_returns_trace(monkeypatch) -> None:
    agent = _DummyAgent(
        result=AgentResult(
            response="✅ Email sent to a@b.com",
            steps=[StepLog(module="gmail_agent.format", prompt={}, response={})],
            tool_result={"successful": True},
        )
    )
    monkeypatch.setattr(main_module, "gmail_agent", agent)

    response = asyncio.run(main_module.chat(ChatRequest(principal="me@x.com", message="send email to a@b.com saying hi")))

    assert isinstance(response, ChatResponse)
    assert response.reply == "✅ Email sent to a@b.com"
    assert response.model_dump(by_alias=True)["toolResult"] == {"successful": True}
    assert agent.calls == [("send email to a@b.com saying hi", {"principal": "me@x.com"})]


def test_chat_transport_error_is_502(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "gmail_agent", _DummyAgent(error=ToolTransportError("provider down")))

    response = asyncio.run(main_module.chat(ChatRequest(principal="me@x.com", message="check my inbox")))

    assert response.status_code == 502
    body = json.loads(response.body)
    assert body["details"] == "provider down"


def test_chat_unexpected_error_is_500(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "gmail_agent", _DummyAgent(error=KeyError("boom")))

    response = asyncio.run(main_module.chat(ChatRequest(principal="me@x.com", message="check my inbox")))

    assert response.status_code == 500
    assert json.loads(response.body)["error"] == "Internal server error"


def test_gmail_tools_filters_by_category_and_search(monkeypatch) -> None:
    tools = [
        RemoteTool(operation_id="GMAIL_SEND_EMAIL", description="Send an email"),
        RemoteTool(operation_id="GMAIL_CREATE_EMAIL_DRAFT", description="Create a draft"),
        RemoteTool(operation_id="GMAIL_FETCH_EMAILS", description="Fetch emails"),
    ]
    monkeypatch.setattr(main_module, "tool_client", _DummyToolClient(tools))

    response = asyncio.run(main_module.gmail_tools(principal="me@x.com", category="draft", search=None))

    assert response.total_tools == 3
    assert response.filtered_count == 1
    assert response.tools[0].slug == "GMAIL_CREATE_EMAIL_DRAFT"
    assert response.applied_filters == {"category": "draft", "search": ""}

    searched = asyncio.run(main_module.gmail_tools(principal="me@x.com", category=None, search="send"))
    assert [tool.slug for tool in searched.tools] == ["GMAIL_SEND_EMAIL"]


def test_gmail_tools_provider_failure(monkeypatch) -> None:
    monkeypatch.setattr(main_module, "tool_client", _DummyToolClient(error=ToolTransportError("no key")))

    response = asyncio.run(main_module.gmail_tools(principal="me@x.com", category=None, search=None))

    assert response.status_code == 502


def test_unknown_route_returns_json_404() -> None:
    response = asyncio.run(main_module.http_exception_handler(_request("/nope"), StarletteHTTPException(404)))

    assert response.status_code == 404
    assert json.loads(response.body) == {"error": "Not found", "path": "/nope"}


def test_request_validation_error_is_400() -> None:
    exc = SimpleNamespace(errors=lambda: [{"loc": ["body", "message"], "msg": "Field required"}])
    response = asyncio.run(main_module.validation_exception_handler(_request("/api/chat"), exc))

    assert response.status_code == 400
    assert json.loads(response.body)["error"] == "Invalid request"

"""Async adapter for the Composio tool-execution REST API.

Two calls are used by the chat pipeline:

- ``list_tools(principal)`` returns the Gmail operations the principal can run.
- ``execute(operation_id, principal, arguments)`` runs one operation and
  returns a :class:`RemoteResult`.

HTTP failures are mapped onto the typed errors in :mod:`mailbot.exceptions`
so callers branch on exception type rather than on error text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from mailbot.exceptions import ToolNotFoundError, ToolTransportError, ToolValidationError

logger = logging.getLogger(__name__)

TOOL_CATEGORIES = ["fetch", "send", "draft", "reply", "labels", "search", "actions", "other"]

_CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("fetch", ("fetch", "get", "list", "read")),
    ("send", ("send", "compose")),
    ("draft", ("draft",)),
    ("reply", ("reply", "forward")),
    ("labels", ("label", "folder")),
    ("search", ("search", "query")),
    ("actions", ("mark", "delete", "star", "archive", "spam", "trash")),
]


@dataclass
class RemoteTool:
    """One operation exposed by the tool provider."""

    operation_id: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> str:
        return categorize_tool(self.operation_id)


@dataclass
class RemoteResult:
    """Outcome of one remote execution as reported by the provider."""

    successful: bool
    data: Any = None
    error: str | None = None
    operation_id: str | None = None
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": self.successful,
            "data": self.data,
            "error": self.error,
            "operation": self.operation_id,
            "attempts": self.attempts,
        }


def categorize_tool(operation_id: str) -> str:
    """Bucket an operation identifier by the first matching keyword group."""
    if not operation_id:
        return "other"
    lowered = operation_id.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return "other"


def _parse_tool(raw: dict[str, Any], index: int) -> RemoteTool:
    # v3 items carry slug/input_parameters; OpenAI-style tools nest under "function".
    function = raw.get("function") if isinstance(raw.get("function"), dict) else {}
    operation_id = raw.get("slug") or function.get("name") or raw.get("name") or f"tool_{index}"
    description = raw.get("description") or function.get("description") or "No description available"
    parameters = raw.get("input_parameters") or function.get("parameters") or raw.get("parameters") or {}
    return RemoteTool(
        operation_id=str(operation_id),
        description=str(description),
        parameters=parameters if isinstance(parameters, dict) else {},
    )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:300] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return str(body)[:300]


def _json_body(response: httpx.Response, context: str, *, operation_id: str | None = None) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise ToolTransportError(
            f"{context}: provider returned a non-JSON response (HTTP {response.status_code})",
            operation_id=operation_id,
            status_code=response.status_code,
        ) from exc


class ComposioToolClient:
    """Thin async client over Composio's tools endpoints."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        toolkit: str = "GMAIL",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._toolkit = toolkit
        self._timeout = timeout_seconds
        self._transport = transport

    @property
    def is_available(self) -> bool:
        """Return True when an API key is configured."""

        return bool(self._api_key)

    @property
    def toolkit(self) -> str:
        return self._toolkit

    def _client(self) -> httpx.AsyncClient:
        if not self._api_key:
            raise ToolTransportError("Tool provider is not configured (missing COMPOSIO_API_KEY)")
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"x-api-key": self._api_key, "Content-Type": "application/json"},
            timeout=self._timeout,
            transport=self._transport,
            trust_env=False,
        )

    async def list_tools(self, principal: str) -> list[RemoteTool]:
        """List the toolkit's operations available to ``principal``."""

        params = {"toolkit_slug": self._toolkit, "user_id": principal, "limit": 200}
        try:
            async with self._client() as client:
                response = await client.get("/tools", params=params)
        except httpx.HTTPError as exc:
            raise ToolTransportError(f"Failed to list {self._toolkit} tools: {exc}") from exc

        if response.status_code >= 400:
            raise ToolTransportError(
                f"Failed to list {self._toolkit} tools: {_error_message(response)}",
                status_code=response.status_code,
            )
        body = _json_body(response, f"Failed to list {self._toolkit} tools")
        items = body.get("items", []) if isinstance(body, dict) else body
        if not isinstance(items, list):
            items = []
        tools = [_parse_tool(item, i) for i, item in enumerate(items) if isinstance(item, dict)]
        logger.info("Found %s %s tools for principal=%s", len(tools), self._toolkit, principal)
        return tools

    async def execute(self, operation_id: str, principal: str, arguments: dict[str, Any]) -> RemoteResult:
        """Run one operation on behalf of ``principal``."""

        payload = {"user_id": principal, "arguments": arguments}
        try:
            async with self._client() as client:
                response = await client.post(f"/tools/execute/{operation_id}", json=payload)
        except httpx.HTTPError as exc:
            raise ToolTransportError(
                f"Failed to execute {operation_id}: {exc}",
                operation_id=operation_id,
            ) from exc

        status = response.status_code
        if status == 404:
            raise ToolNotFoundError(
                f"Operation {operation_id} not found: {_error_message(response)}",
                operation_id=operation_id,
                status_code=status,
            )
        if status in (400, 422):
            raise ToolValidationError(
                f"Invalid arguments for {operation_id}: {_error_message(response)}",
                operation_id=operation_id,
                status_code=status,
            )
        if status >= 400:
            raise ToolTransportError(
                f"Failed to execute {operation_id}: {_error_message(response)}",
                operation_id=operation_id,
                status_code=status,
            )

        body = _json_body(response, f"Failed to execute {operation_id}", operation_id=operation_id)
        if not isinstance(body, dict):
            body = {"data": body}
        error = body.get("error")
        return RemoteResult(
            successful=bool(body.get("successful", body.get("successfull", False))),
            data=body.get("data"),
            error=str(error) if error else None,
            operation_id=operation_id,
        )

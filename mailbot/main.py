"""FastAPI entrypoint for the Gmail chat backend."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Header, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from mailbot.agents.gmail_agent import GmailAgent, GmailAgentConfig
from mailbot.agents.intent_resolver import IntentResolver
from mailbot.config import load_settings
from mailbot.exceptions import AuthError, PreferenceStoreError, ToolTransportError
from mailbot.schemas import (
    ChatRequest,
    ChatResponse,
    GmailToolResponse,
    GmailToolsResponse,
    HealthResponse,
    OnboardingRecordResponse,
    OnboardingRequest,
    OnboardingResponse,
)
from mailbot.services.auth import AuthService, AuthenticatedUser
from mailbot.services.chat_service import ChatService
from mailbot.services.intent_classifier import IntentClassifier
from mailbot.services.preference_store import OnboardingPreferences, PreferenceStore
from mailbot.services.tool_client import TOOL_CATEGORIES, ComposioToolClient

load_dotenv()
settings = load_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Gmail Chat Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

tool_client = ComposioToolClient(
    api_key=settings.composio_api_key,
    base_url=settings.composio_base_url,
    toolkit=settings.composio_toolkit,
    timeout_seconds=settings.composio_timeout_seconds,
)
chat_service = ChatService(
    api_key=settings.llm_api_key,
    base_url=settings.llm_base_url,
    model=settings.llm_chat_model,
    max_output_tokens=settings.llm_max_output_tokens,
)
intent_classifier = IntentClassifier(chat_service=chat_service, enabled=settings.classifier_enabled)


async def _list_operation_names(principal: str) -> list[str]:
    if not tool_client.is_available:
        return []
    return [tool.operation_id for tool in await tool_client.list_tools(principal)]


intent_resolver = IntentResolver(classifier=intent_classifier, list_operations=_list_operation_names)
gmail_agent = GmailAgent(
    tool_client=tool_client,
    resolver=intent_resolver,
    config=GmailAgentConfig(
        fetch_max_results=settings.fetch_max_results,
        search_max_results=settings.search_max_results,
    ),
)
auth_service = AuthService(
    supabase_url=settings.supabase_url,
    api_key=settings.supabase_service_role_key,
)
preference_store = PreferenceStore(
    database_url=settings.database_url,
    file_path=settings.preferences_file,
)


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    content: dict[str, str] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(400, "Invalid request", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Not found", "path": request.url.path})
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(500, "Internal server error", str(exc))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="OK", timestamp=datetime.now(timezone.utc).isoformat())


@app.post("/api/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest) -> ChatResponse | JSONResponse:
    """Run one chat message through the Gmail agent and return reply plus trace."""

    logger.info("Chat request principal=%s", payload.principal)
    try:
        result = await gmail_agent.run(payload.message, context={"principal": payload.principal})
    except ToolTransportError as exc:
        logger.warning("Tool provider failure for principal=%s: %s", payload.principal, exc)
        return _error(502, "Tool provider unavailable", str(exc))
    except Exception as exc:
        logger.exception("Chat request failed for principal=%s", payload.principal)
        return _error(500, "Internal server error", f"{type(exc).__name__}: {exc}")
    return ChatResponse(reply=result.response, tool_result=result.tool_result, steps=result.steps)


@app.get("/api/gmail/tools", response_model=GmailToolsResponse)
async def gmail_tools(
    principal: str = Query(default="default", min_length=1),
    category: str | None = Query(default=None),
    search: str | None = Query(default=None),
) -> GmailToolsResponse | JSONResponse:
    """List the Gmail operations available to ``principal`` with optional filters."""

    try:
        tools = await tool_client.list_tools(principal)
    except ToolTransportError as exc:
        return _error(502, "Failed to fetch Gmail tools", str(exc))

    filtered = tools
    if category and category != "all":
        filtered = [tool for tool in filtered if tool.category == category]
    if search:
        needle = search.lower()
        filtered = [
            tool
            for tool in filtered
            if needle in tool.operation_id.lower() or needle in tool.description.lower()
        ]

    return GmailToolsResponse(
        success=True,
        total_tools=len(tools),
        filtered_count=len(filtered),
        tools=[
            GmailToolResponse(
                slug=tool.operation_id,
                name=tool.operation_id,
                description=tool.description,
                category=tool.category,
                parameters=tool.parameters,
            )
            for tool in filtered
        ],
        categories=list(TOOL_CATEGORIES),
        applied_filters={"category": category or "all", "search": search or ""},
    )


async def _authenticate(authorization: str | None) -> AuthenticatedUser | JSONResponse:
    try:
        return await auth_service.resolve_user(authorization)
    except AuthError as exc:
        logger.info("Rejected onboarding request: %s", exc)
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@app.post("/api/onboarding", response_model=OnboardingResponse)
async def save_onboarding(
    payload: OnboardingRequest,
    authorization: str | None = Header(default=None),
) -> OnboardingResponse | JSONResponse:
    """Save or update the caller's onboarding preferences."""

    user = await _authenticate(authorization)
    if isinstance(user, JSONResponse):
        return user
    if not payload.purpose or not payload.profession or payload.integrations is None:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Missing required fields: purpose, profession, integrations"},
        )
    try:
        record = preference_store.save(
            user.id,
            OnboardingPreferences(
                purpose=payload.purpose,
                profession=payload.profession,
                integrations=list(payload.integrations),
            ),
        )
    except PreferenceStoreError as exc:
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    return OnboardingResponse(success=True, data=OnboardingRecordResponse(**record.to_dict()))


@app.get("/api/onboarding", response_model=OnboardingResponse)
async def get_onboarding(authorization: str | None = Header(default=None)) -> OnboardingResponse | JSONResponse:
    """Fetch the caller's onboarding preferences (``data`` is null when none are stored)."""

    user = await _authenticate(authorization)
    if isinstance(user, JSONResponse):
        return user
    try:
        record = preference_store.get(user.id)
    except PreferenceStoreError as exc:
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    data = OnboardingRecordResponse(**record.to_dict()) if record is not None else None
    return OnboardingResponse(success=True, data=data)

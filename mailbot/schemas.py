"""Pydantic schemas for API request/response contracts."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class StepLog(BaseModel):
    """One traced stage of the chat pipeline."""

    module: str
    prompt: dict[str, Any]
    response: dict[str, Any]


class HealthResponse(BaseModel):
    """Response schema for `GET /health`."""

    status: Literal["OK"]
    timestamp: str


class ErrorResponse(BaseModel):
    """Structured error body returned for every failed request."""

    error: str
    details: str | None = None


class ChatRequest(BaseModel):
    """Input schema for `POST /api/chat`."""

    principal: str = Field(
        min_length=1,
        validation_alias=AliasChoices("principal", "userId"),
        description="Identifier the tool provider uses to scope the mailbox (usually an email address)",
    )
    message: str = Field(min_length=1, description="Free-text chat message")


class ChatResponse(BaseModel):
    """Output schema for `POST /api/chat`."""

    model_config = ConfigDict(populate_by_name=True)

    reply: str
    tool_result: dict[str, Any] | None = Field(default=None, alias="toolResult")
    steps: list[StepLog] = Field(default_factory=list)


class GmailToolResponse(BaseModel):
    """One remote Gmail operation available to a principal."""

    slug: str
    name: str
    description: str
    category: str
    parameters: dict[str, Any]


class GmailToolsResponse(BaseModel):
    """Response schema for `GET /api/gmail/tools`."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    total_tools: int = Field(alias="totalTools")
    filtered_count: int = Field(alias="filteredCount")
    tools: list[GmailToolResponse]
    categories: list[str]
    applied_filters: dict[str, str] = Field(alias="appliedFilters")


class OnboardingRequest(BaseModel):
    """Input schema for `POST /api/onboarding`."""

    purpose: str | None = None
    profession: str | None = None
    integrations: list[str] | None = None


class OnboardingRecordResponse(BaseModel):
    """Stored onboarding preferences for one user."""

    user_id: str
    purpose: str
    profession: str
    integrations: list[str]
    created_at: str | None = None
    updated_at: str | None = None


class OnboardingResponse(BaseModel):
    """Response schema for onboarding reads and writes."""

    success: bool
    data: OnboardingRecordResponse | None = None
    error: str | None = None

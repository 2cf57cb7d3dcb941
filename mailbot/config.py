"""Centralized runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_COMPOSIO_BASE_URL = "https://backend.composio.dev/api/v3"
DEFAULT_LLM_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:8080"]


@dataclass
class Settings:
    """Application settings used across the API, chat pipeline, and services."""

    composio_api_key: str | None
    composio_base_url: str
    composio_toolkit: str
    composio_timeout_seconds: float
    llm_api_key: str | None
    llm_base_url: str | None
    llm_chat_model: str
    llm_max_output_tokens: int
    classifier_enabled: bool
    supabase_url: str | None
    supabase_service_role_key: str | None
    database_url: str | None
    preferences_file: str
    cors_origins: list[str]
    fetch_max_results: int
    search_max_results: int
    log_level: str


def load_settings() -> Settings:
    """Load settings from environment with safe defaults for local development."""

    def parse_bool(value: str | None, default: bool) -> bool:
        if value is None:
            return default
        lowered = value.strip().lower()
        return lowered in {"1", "true", "yes", "on"}

    def parse_int(value: str | None, default: int) -> int:
        if value is None or value.strip() == "":
            return default
        try:
            return int(value)
        except ValueError:
            return default

    def parse_float(value: str | None, default: float) -> float:
        if value is None or value.strip() == "":
            return default
        try:
            return float(value)
        except ValueError:
            return default

    cors_raw = os.getenv("CORS_ORIGINS")
    cors_origins = (
        [x.strip() for x in cors_raw.split(",") if x.strip()]
        if cors_raw
        else list(DEFAULT_CORS_ORIGINS)
    )

    return Settings(
        composio_api_key=os.getenv("COMPOSIO_API_KEY"),
        composio_base_url=os.getenv("COMPOSIO_BASE_URL", DEFAULT_COMPOSIO_BASE_URL).rstrip("/"),
        composio_toolkit=os.getenv("COMPOSIO_TOOLKIT", "GMAIL").strip().upper() or "GMAIL",
        composio_timeout_seconds=parse_float(os.getenv("COMPOSIO_TIMEOUT_SECONDS"), 30.0),
        llm_api_key=os.getenv("LLM_API_KEY") or os.getenv("GEMINI_API_KEY"),
        llm_base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
        llm_chat_model=os.getenv("LLM_CHAT_MODEL", "gemini-2.0-flash"),
        llm_max_output_tokens=max(1, parse_int(os.getenv("LLM_MAX_OUTPUT_TOKENS"), 512)),
        classifier_enabled=parse_bool(os.getenv("CLASSIFIER_ENABLED"), True),
        supabase_url=(os.getenv("SUPABASE_URL") or "").rstrip("/") or None,
        supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
        database_url=os.getenv("DATABASE_URL"),
        preferences_file=os.getenv("PREFERENCES_FILE", "data/onboardings.json"),
        cors_origins=cors_origins,
        fetch_max_results=max(1, parse_int(os.getenv("FETCH_MAX_RESULTS"), 10)),
        search_max_results=max(1, parse_int(os.getenv("SEARCH_MAX_RESULTS"), 5)),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )

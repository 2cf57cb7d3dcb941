from __future__ import annotations

from mailbot.config import load_settings


def test_load_settings_defaults(monkeypatch) -> None:
    for key in (
        "COMPOSIO_BASE_URL",
        "COMPOSIO_TOOLKIT",
        "LLM_API_KEY",
        "GEMINI_API_KEY",
        "LLM_CHAT_MODEL",
        "CORS_ORIGINS",
        "FETCH_MAX_RESULTS",
        "CLASSIFIER_ENABLED",
    ):
        monkeypatch.delenv(key, raising=False)

    settings = load_settings()

    assert settings.composio_base_url == "https://backend.composio.dev/api/v3"
    assert settings.composio_toolkit == "GMAIL"
    assert settings.llm_api_key is None
    assert settings.llm_chat_model == "gemini-2.0-flash"
    assert settings.fetch_max_results == 10
    assert settings.classifier_enabled is True
    assert "http://localhost:5173" in settings.cors_origins


def test_load_settings_reads_overrides(monkeypatch) -> None:
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "gem-key")
    monkeypatch.setenv("COMPOSIO_TOOLKIT", "gmail")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("CLASSIFIER_ENABLED", "false")
    monkeypatch.setenv("SEARCH_MAX_RESULTS", "7")

    settings = load_settings()

    assert settings.llm_api_key == "gem-key"
    assert settings.composio_toolkit == "GMAIL"
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.classifier_enabled is False
    assert settings.search_max_results == 7


def test_load_settings_tolerates_bad_numbers(monkeypatch) -> None:
    monkeypatch.setenv("FETCH_MAX_RESULTS", "lots")
    monkeypatch.setenv("COMPOSIO_TIMEOUT_SECONDS", "")

    settings = load_settings()

    assert settings.fetch_max_results == 10
    assert settings.composio_timeout_seconds == 30.0

from __future__ import annotations

import asyncio

import httpx
import pytest

from mailbot.exceptions import AuthError
from mailbot.services.auth import AuthService, extract_bearer_token


def _service(handler) -> AuthService:
    return AuthService(
        supabase_url="https://project.supabase.invalid/",
        api_key="service-role",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("Bearer abc", "abc"),
        ("bearer  xyz ", "xyz"),
        ("Basic abc", None),
        ("Bearer ", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header: str | None, expected: str | None) -> None:
    assert extract_bearer_token(header) == expected


def test_resolve_user_calls_auth_endpoint() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json={"id": "user-1", "email": "u@x.com"})

    user = asyncio.run(_service(handler).resolve_user("Bearer token-1"))

    assert user.id == "user-1"
    assert user.email == "u@x.com"
    assert seen == {
        "url": "https://project.supabase.invalid/auth/v1/user",
        "auth": "Bearer token-1",
        "apikey": "service-role",
    }


def test_rejected_token_raises_auth_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"msg": "invalid JWT"})

    with pytest.raises(AuthError):
        asyncio.run(_service(handler).resolve_user("Bearer expired"))


def test_missing_header_raises_before_any_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(AuthError):
        asyncio.run(_service(handler).resolve_user(None))


def test_unconfigured_service_rejects_everything() -> None:
    service = AuthService(supabase_url=None, api_key=None)
    assert service.is_available is False
    with pytest.raises(AuthError):
        asyncio.run(service.resolve_user("Bearer abc"))

from __future__ import annotations

import asyncio
import json

import mailbot.main as main_module
from mailbot.exceptions import AuthError
from mailbot.schemas import OnboardingRequest
from mailbot.services.auth import AuthenticatedUser
from mailbot.services.preference_store import PreferenceStore


class _DummyAuthService:
    def __init__(self, user: AuthenticatedUser | None) -> None:
        self.user = user

    async def resolve_user(self, authorization: str | None) -> AuthenticatedUser:
        if self.user is None or authorization != "Bearer good":
            raise AuthError("rejected")
        return self.user


def _install(monkeypatch, tmp_path, user: AuthenticatedUser | None) -> None:
    monkeypatch.setattr(main_module, "auth_service", _DummyAuthService(user))
    monkeypatch.setattr(
        main_module,
        "preference_store",
        PreferenceStore(database_url=None, file_path=tmp_path / "onboardings.json"),
    )


def test_unauthorized_requests_get_401(monkeypatch, tmp_path) -> None:
    _install(monkeypatch, tmp_path, None)

    response = asyncio.run(main_module.get_onboarding(authorization="Bearer bad"))

    assert response.status_code == 401
    assert json.loads(response.body) == {"error": "Unauthorized"}


def test_missing_fields_get_400(monkeypatch, tmp_path) -> None:
    _install(monkeypatch, tmp_path, AuthenticatedUser(id="u1", email="u1@x.com"))

    response = asyncio.run(
        main_module.save_onboarding(OnboardingRequest(purpose="work"), authorization="Bearer good")
    )

    assert response.status_code == 400
    assert json.loads(response.body)["success"] is False


def test_save_then_get(monkeypatch, tmp_path) -> None:
    _install(monkeypatch, tmp_path, AuthenticatedUser(id="u1", email="u1@x.com"))

    empty = asyncio.run(main_module.get_onboarding(authorization="Bearer good"))
    assert empty.success is True
    assert empty.data is None

    saved = asyncio.run(
        main_module.save_onboarding(
            OnboardingRequest(purpose="work", profession="engineer", integrations=["gmail"]),
            authorization="Bearer good",
        )
    )
    assert saved.success is True
    assert saved.data.user_id == "u1"

    fetched = asyncio.run(main_module.get_onboarding(authorization="Bearer good"))
    assert fetched.data.profession == "engineer"
    assert fetched.data.integrations == ["gmail"]

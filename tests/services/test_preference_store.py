from __future__ import annotations

import pytest

from mailbot.exceptions import PreferenceStoreError
from mailbot.services.preference_store import OnboardingPreferences, PreferenceStore


def test_file_backend_round_trip(tmp_path) -> None:
    store = PreferenceStore(database_url=None, file_path=tmp_path / "prefs" / "onboardings.json")
    assert store.backend == "file"
    assert store.get("user-1") is None

    saved = store.save("user-1", OnboardingPreferences(purpose="work", profession="engineer", integrations=["gmail"]))
    loaded = store.get("user-1")

    assert loaded == saved
    assert loaded.integrations == ["gmail"]
    assert loaded.created_at is not None


def test_upsert_keeps_created_at(tmp_path) -> None:
    store = PreferenceStore(database_url="  ", file_path=tmp_path / "onboardings.json")
    first = store.save("u", OnboardingPreferences(purpose="a", profession="b"))
    second = store.save("u", OnboardingPreferences(purpose="c", profession="d", integrations=["slack"]))

    assert second.created_at == first.created_at
    assert store.get("u").purpose == "c"


def test_corrupt_file_raises_store_error(tmp_path) -> None:
    path = tmp_path / "onboardings.json"
    path.write_text("{not json", encoding="utf-8")
    store = PreferenceStore(database_url=None, file_path=path)

    with pytest.raises(PreferenceStoreError):
        store.get("u")


def test_database_url_selects_postgres_backend() -> None:
    store = PreferenceStore(database_url="postgresql://localhost/mailbot")
    assert store.backend == "postgres"

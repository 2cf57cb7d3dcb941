"""Persistence for per-user onboarding preferences.

Postgres (table ``onboardings``) is used when DATABASE_URL is set; otherwise
records live in a local JSON file keyed by user id.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import psycopg

from mailbot.exceptions import PreferenceStoreError

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS onboardings (
        user_id TEXT PRIMARY KEY,
        purpose TEXT NOT NULL,
        profession TEXT NOT NULL,
        integrations JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        updated_at TIMESTAMPTZ DEFAULT NOW()
    )
"""


@dataclass
class OnboardingPreferences:
    purpose: str
    profession: str
    integrations: list[str] = field(default_factory=list)


@dataclass
class OnboardingRecord:
    user_id: str
    purpose: str
    profession: str
    integrations: list[str]
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class PreferenceStore:
    """Upserts and reads onboarding records."""

    def __init__(self, *, database_url: str | None, file_path: str | Path = "data/onboardings.json") -> None:
        self._database_url = database_url.strip() if database_url and database_url.strip() else None
        self._file_path = Path(file_path)

    @property
    def backend(self) -> str:
        return "postgres" if self._database_url else "file"

    def save(self, user_id: str, preferences: OnboardingPreferences) -> OnboardingRecord:
        if self._database_url:
            return self._save_postgres(user_id, preferences)
        return self._save_file(user_id, preferences)

    def get(self, user_id: str) -> OnboardingRecord | None:
        if self._database_url:
            return self._get_postgres(user_id)
        return self._get_file(user_id)

    # -- file backend ---------------------------------------------------------------

    def _read_file(self) -> dict[str, Any]:
        path = self._file_path
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read onboarding file %s: %s", path, e)
            raise PreferenceStoreError("Failed to fetch onboarding data") from e
        return data if isinstance(data, dict) else {}

    def _get_file(self, user_id: str) -> OnboardingRecord | None:
        raw = self._read_file().get(user_id)
        if not isinstance(raw, dict):
            return None
        return OnboardingRecord(
            user_id=user_id,
            purpose=str(raw.get("purpose", "")),
            profession=str(raw.get("profession", "")),
            integrations=[str(x) for x in raw.get("integrations") or []],
            created_at=raw.get("created_at"),
            updated_at=raw.get("updated_at"),
        )

    def _save_file(self, user_id: str, preferences: OnboardingPreferences) -> OnboardingRecord:
        data = self._read_file()
        now = _now_iso()
        existing = data.get(user_id) if isinstance(data.get(user_id), dict) else {}
        record = OnboardingRecord(
            user_id=user_id,
            purpose=preferences.purpose,
            profession=preferences.profession,
            integrations=list(preferences.integrations),
            created_at=existing.get("created_at") or now,
            updated_at=now,
        )
        data[user_id] = record.to_dict()
        path = self._file_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Failed to write onboarding file %s: %s", path, e)
            raise PreferenceStoreError("Failed to save onboarding data") from e
        return record

    # -- postgres backend -----------------------------------------------------------

    def _get_postgres(self, user_id: str) -> OnboardingRecord | None:
        try:
            with psycopg.connect(self._database_url, prepare_threshold=None, connect_timeout=5) as conn:
                with conn.cursor() as cur:
                    cur.execute(_CREATE_TABLE)
                    cur.execute(
                        """
                        SELECT user_id, purpose, profession, integrations, created_at, updated_at
                        FROM onboardings WHERE user_id = %s
                        """,
                        (user_id,),
                    )
                    row = cur.fetchone()
        except psycopg.Error as e:
            logger.warning("Failed to get onboarding from Postgres: %s", e)
            raise PreferenceStoreError("Failed to fetch onboarding data") from e
        if not row:
            return None
        integrations = row[3]
        if isinstance(integrations, str):
            integrations = json.loads(integrations)
        return OnboardingRecord(
            user_id=row[0],
            purpose=row[1],
            profession=row[2],
            integrations=list(integrations or []),
            created_at=_iso(row[4]),
            updated_at=_iso(row[5]),
        )

    def _save_postgres(self, user_id: str, preferences: OnboardingPreferences) -> OnboardingRecord:
        try:
            with psycopg.connect(self._database_url, prepare_threshold=None, connect_timeout=5) as conn:
                with conn.cursor() as cur:
                    cur.execute(_CREATE_TABLE)
                    cur.execute(
                        """
                        INSERT INTO onboardings (user_id, purpose, profession, integrations, updated_at)
                        VALUES (%s, %s, %s, %s::jsonb, NOW())
                        ON CONFLICT (user_id) DO UPDATE SET
                            purpose = EXCLUDED.purpose,
                            profession = EXCLUDED.profession,
                            integrations = EXCLUDED.integrations,
                            updated_at = NOW()
                        RETURNING created_at, updated_at
                        """,
                        (user_id, preferences.purpose, preferences.profession, json.dumps(preferences.integrations)),
                    )
                    row = cur.fetchone()
                conn.commit()
        except psycopg.Error as e:
            logger.warning("Failed to save onboarding in Postgres: %s", e)
            raise PreferenceStoreError("Failed to save onboarding data") from e
        return OnboardingRecord(
            user_id=user_id,
            purpose=preferences.purpose,
            profession=preferences.profession,
            integrations=list(preferences.integrations),
            created_at=_iso(row[0]) if row else None,
            updated_at=_iso(row[1]) if row else None,
        )

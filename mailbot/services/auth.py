"""Bearer-token verification against the Supabase auth API."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from mailbot.exceptions import AuthError

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    id: str
    email: str


def extract_bearer_token(authorization: str | None) -> str | None:
    """Parse Authorization header as Bearer token, returning None if absent/invalid."""

    if not authorization:
        return None
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


class AuthService:
    """Resolves the user behind an access token via ``GET /auth/v1/user``."""

    def __init__(
        self,
        *,
        supabase_url: str | None,
        api_key: str | None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._supabase_url = (supabase_url or "").rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._transport = transport

    @property
    def is_available(self) -> bool:
        return bool(self._supabase_url and self._api_key)

    async def resolve_user(self, authorization: str | None) -> AuthenticatedUser:
        token = extract_bearer_token(authorization)
        if token is None:
            raise AuthError("Missing bearer token")
        if not self.is_available:
            raise AuthError("Authentication is not configured (missing SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY)")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                trust_env=False,
            ) as client:
                response = await client.get(
                    f"{self._supabase_url}/auth/v1/user",
                    headers={"Authorization": f"Bearer {token}", "apikey": self._api_key or ""},
                )
        except httpx.HTTPError as exc:
            logger.warning("Auth lookup failed: %s", exc)
            raise AuthError("Auth provider unreachable") from exc

        if response.status_code != 200:
            raise AuthError(f"Token rejected (HTTP {response.status_code})")
        body = response.json()
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            raise AuthError("Token did not resolve to a user")
        return AuthenticatedUser(id=str(user_id), email=str(body.get("email") or ""))

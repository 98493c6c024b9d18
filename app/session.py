"""Resolution of the authenticated viewer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from .config import Settings
from .errors import StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Identity:
    """The signed-in user a provider call acts on behalf of."""

    user_id: str

    def is_user(self, user_id: object) -> bool:
        return user_id is not None and str(user_id).strip() == self.user_id


class SessionResolver(Protocol):
    async def resolve(self) -> Identity | None:
        """Return the current identity, or ``None`` when nobody is signed in."""


class StaticSessionResolver:
    """Resolver returning a fixed identity (or none for anonymous callers)."""

    def __init__(self, user_id: str | None = None) -> None:
        cleaned = (user_id or "").strip()
        self._identity = Identity(cleaned) if cleaned else None

    async def resolve(self) -> Identity | None:
        return self._identity


class TokenSessionResolver:
    """Resolve a bearer token against the store's ``/auth/v1/user`` endpoint."""

    _USER_PATH = "/auth/v1/user"

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        access_token: str | None,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._access_token = (access_token or "").strip() or None
        self._resolved = False
        self._identity: Identity | None = None

    async def resolve(self) -> Identity | None:
        if self._resolved:
            return self._identity
        if not self._access_token:
            return None

        headers = {"Authorization": f"Bearer {self._access_token}"}
        if self._settings.store_anon_key:
            headers["apikey"] = self._settings.store_anon_key
        url = f"{self._settings.store_base_url or ''}{self._USER_PATH}"
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.TransportError as exc:
            raise StoreError(f"NetworkError while resolving session: {exc}") from exc

        if response.status_code in (401, 403):
            logger.info("Session token rejected by the auth endpoint")
            self._resolved = True
            return None
        if response.status_code >= 400:
            raise StoreError(
                f"Session lookup failed: {response.text}",
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreError("Unexpected non-JSON session response") from exc
        user_id = str(payload.get("id") or "").strip() if isinstance(payload, dict) else ""
        self._identity = Identity(user_id) if user_id else None
        self._resolved = True
        return self._identity

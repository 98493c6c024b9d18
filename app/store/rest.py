"""Store backend speaking the PostgREST dialect over httpx."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from ..config import Settings
from ..errors import StoreError
from .base import Filter, Order, Row, StoreClient

logger = logging.getLogger(__name__)


class RestStoreClient(StoreClient):
    """Thin wrapper around a PostgREST endpoint (``/rest/v1``).

    The caller's access token is sent as bearer credentials so row-level
    security on the server sees the same user the providers act for.
    """

    _REST_PREFIX = "/rest/v1"

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        access_token: str | None = None,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._access_token = (access_token or "").strip() or None

    def _headers(self, *, prefer: str | None = None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        anon_key = self._settings.store_anon_key
        if anon_key:
            headers["apikey"] = anon_key
        bearer = self._access_token or anon_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _url(self, path: str) -> str:
        return f"{self._settings.store_base_url or ''}{self._REST_PREFIX}/{path}"

    async def select(
        self,
        table: str,
        columns: Sequence[str],
        *,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: int | None = None,
    ) -> list[Row]:
        params: list[tuple[str, str]] = [("select", ",".join(columns) or "*")]
        params.extend(self._filter_params(filters))
        if order:
            params.append(
                (
                    "order",
                    ",".join(
                        f"{entry.column}.{'asc' if entry.ascending else 'desc'}"
                        for entry in order
                    ),
                )
            )
        if limit is not None:
            params.append(("limit", str(limit)))
        response = await self._request("GET", table, params=params)
        return self._rows(response)

    async def insert(self, table: str, row: Mapping[str, Any]) -> list[Row]:
        response = await self._request(
            "POST", table, json=dict(row), prefer="return=representation"
        )
        return self._rows(response)

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        on_conflict: Sequence[str],
    ) -> list[Row]:
        response = await self._request(
            "POST",
            table,
            params=[("on_conflict", ",".join(on_conflict))],
            json=dict(row),
            prefer="resolution=merge-duplicates,return=representation",
        )
        return self._rows(response)

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Sequence[Filter],
    ) -> list[Row]:
        response = await self._request(
            "PATCH",
            table,
            params=self._filter_params(filters),
            json=dict(values),
            prefer="return=representation",
        )
        return self._rows(response)

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        response = await self._request(
            "DELETE",
            table,
            params=self._filter_params(filters),
            prefer="return=representation",
        )
        return len(self._rows(response))

    async def toggle_membership(self, table: str, match: Mapping[str, Any]) -> bool:
        """Use the server-side toggle function when one is configured."""

        function = self._settings.store_toggle_rpc
        if not function:
            return await super().toggle_membership(table, match)
        response = await self._request(
            "POST",
            f"rpc/{function}",
            json={"target_table": table, "match": dict(match)},
        )
        payload = self._json(response)
        if isinstance(payload, bool):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get("active"), bool):
            return payload["active"]
        raise StoreError(f"Unexpected toggle response from {function}")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Sequence[tuple[str, str]] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                self._url(path),
                params=list(params or []),
                json=json,
                headers=self._headers(prefer=prefer),
            )
        except httpx.TransportError as exc:
            logger.info(
                "Transport error talking to the store (%s %s): %s",
                method,
                path,
                exc.__class__.__name__,
            )
            raise StoreError(f"NetworkError: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise self._error_from_response(response)
        return response

    @staticmethod
    def _error_from_response(response: httpx.Response) -> StoreError:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = str(payload.get("message") or payload.get("msg") or response.text)
            code = payload.get("code")
            details = payload.get("details")
        else:
            message = response.text or response.reason_phrase
            code = None
            details = None
        return StoreError(
            message,
            status=response.status_code,
            code=str(code) if code is not None else None,
            details=str(details) if details is not None else None,
        )

    @staticmethod
    def _filter_params(filters: Sequence[Filter]) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        for entry in filters:
            if entry.op == "eq":
                if entry.value is None:
                    params.append((entry.column, "is.null"))
                else:
                    params.append((entry.column, f"eq.{_literal(entry.value)}"))
            elif entry.op == "in":
                joined = ",".join(_quoted(item) for item in entry.value)
                params.append((entry.column, f"in.({joined})"))
            elif entry.op == "gte":
                params.append((entry.column, f"gte.{_literal(entry.value)}"))
            else:
                raise StoreError(f"unsupported filter operator {entry.op!r}")
        return params

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError("Unexpected non-JSON store response") from exc

    def _rows(self, response: httpx.Response) -> list[Row]:
        payload = self._json(response)
        if payload is None:
            return []
        if isinstance(payload, dict):
            return [payload]
        if not isinstance(payload, list):
            raise StoreError("Unexpected store response structure")
        return [row for row in payload if isinstance(row, dict)]


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quoted(value: Any) -> str:
    text = _literal(value)
    if any(char in text for char in ',()" '):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text

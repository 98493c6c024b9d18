"""Tests for the PostgREST store client."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from app.config import Settings
from app.errors import StoreError, classify
from app.store import Order, RestStoreClient, eq, gte, in_


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object pointing at a fake store."""

    base = {
        "STORE_BACKEND": "rest",
        "STORE_URL": "https://store.example.com/",
        "STORE_ANON_KEY": "anon-key",
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


@pytest.mark.anyio("asyncio")
async def test_select_encodes_filters_order_and_limit() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=[{"list_id": 1, "user_id": "u1"}])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RestStoreClient(build_settings(), http_client, access_token="user-token")
        rows = await store.select(
            "list",
            ("list_id", "user_id"),
            filters=(eq("can_display", True), in_("user_id", ["u1", "a b"])),
            order=(Order("list_id", ascending=False),),
            limit=5,
        )

    assert rows == [{"list_id": 1, "user_id": "u1"}]
    request = requests[0]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/list"
    params = request.url.params
    assert params["select"] == "list_id,user_id"
    assert params["can_display"] == "eq.true"
    assert params["user_id"] == 'in.(u1,"a b")'
    assert params["order"] == "list_id.desc"
    assert params["limit"] == "5"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer user-token"


@pytest.mark.anyio("asyncio")
async def test_anonymous_requests_use_the_anon_key_as_bearer() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RestStoreClient(build_settings(), http_client)
        await store.select("movie", ("movie_id",), filters=(gte("update", "2024-01-01"),))

    assert seen[0].headers["Authorization"] == "Bearer anon-key"
    assert seen[0].url.params["update"] == "gte.2024-01-01"


@pytest.mark.anyio("asyncio")
async def test_upsert_requests_merge_duplicates() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[{"history_id": 7}])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RestStoreClient(build_settings(), http_client, access_token="t")
        rows = await store.upsert(
            "history",
            {"user_id": "u1", "movie_id": "m1", "clicked_at": "2024-01-01T00:00:00+00:00"},
            on_conflict=("user_id", "movie_id"),
        )

    assert rows == [{"history_id": 7}]
    request = seen[0]
    assert request.method == "POST"
    assert request.url.params["on_conflict"] == "user_id,movie_id"
    assert "resolution=merge-duplicates" in request.headers["Prefer"]
    assert json.loads(request.content)["movie_id"] == "m1"


@pytest.mark.anyio("asyncio")
async def test_error_payload_becomes_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            409,
            json={
                "code": "23505",
                "message": "duplicate key value violates unique constraint",
                "details": "Key (user_id, list_id)=(u1, 42) already exists.",
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RestStoreClient(build_settings(), http_client, access_token="t")
        with pytest.raises(StoreError) as excinfo:
            await store.insert("user_list", {"user_id": "u1", "list_id": "42"})

    assert excinfo.value.code == "23505"
    assert excinfo.value.status == 409
    assert classify(excinfo.value) == "conflict"


@pytest.mark.anyio("asyncio")
async def test_transport_failure_is_classified_as_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RestStoreClient(build_settings(), http_client)
        with pytest.raises(StoreError) as excinfo:
            await store.select("list", ("list_id",))

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert classify(excinfo.value) == "network"


@pytest.mark.anyio("asyncio")
async def test_toggle_uses_default_check_then_act_without_rpc() -> None:
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        if request.method == "GET":
            return httpx.Response(200, json=[])
        return httpx.Response(201, json=[{"user_id": "u1", "list_id": 42}])

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RestStoreClient(build_settings(), http_client, access_token="t")
        active = await store.toggle_membership("user_list", {"user_id": "u1", "list_id": "42"})

    assert active is True
    assert methods == ["GET", "POST"]


@pytest.mark.anyio("asyncio")
async def test_toggle_calls_configured_rpc() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"active": False})

    settings = build_settings(STORE_TOGGLE_RPC="toggle_membership")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        store = RestStoreClient(settings, http_client, access_token="t")
        active = await store.toggle_membership("user_list", {"user_id": "u1", "list_id": "42"})

    assert active is False
    assert len(seen) == 1
    assert seen[0].url.path == "/rest/v1/rpc/toggle_membership"
    assert json.loads(seen[0].content) == {
        "target_table": "user_list",
        "match": {"user_id": "u1", "list_id": "42"},
    }

"""User page profile, external links and profile visibility."""

from __future__ import annotations

from typing import Any, Sequence

import pytest

from app.errors import StoreError
from app.events import EventBus, Topic
from app.models import ProfileUpdate
from app.services.profile import (
    ProfileVisibilityProvider,
    UserPageProvider,
    external_link,
    link_category,
)
from app.session import Identity, StaticSessionResolver
from app.store import Row, SqlStoreClient


@pytest.mark.parametrize(
    ("host", "expected"),
    [
        ("x.com", "x"),
        ("mobile.twitter.com", "x"),
        ("www.youtube.com", "youtube"),
        ("youtu.be", "youtube"),
        ("notyoutube.com", "other"),
        ("example.com", "other"),
    ],
)
def test_link_category(host: str, expected: str) -> None:
    assert link_category(host) == expected


def test_external_link_accepts_http_urls_only() -> None:
    link = external_link(" https://x.com/oshi ", "  ")

    assert link is not None
    assert link.url == "https://x.com/oshi"
    assert link.label is None
    assert external_link("javascript:alert(1)") is None
    assert external_link("ftp://example.com/file") is None
    assert external_link("not a url") is None
    assert external_link(None) is None


@pytest.mark.anyio("asyncio")
async def test_fetch_user_profile(sql_store: SqlStoreClient) -> None:
    await sql_store.insert(
        "users",
        {
            "user_id": "u1",
            "name": "Hana",
            "x_url": "https://twitter.com/hana",
            "x_label": "Hana on X",
            "youtube_url": "mailto:hana@example.com",
            "other_url": "https://blog.example.com",
        },
    )
    provider = UserPageProvider(sql_store)

    result = await provider.fetch_user_profile("u1")
    missing = await provider.fetch_user_profile("ghost")

    assert result.data is not None
    assert result.data.name == "Hana"
    assert [(link.category, link.label) for link in result.data.links] == [
        ("x", "Hana on X"),
        ("other", None),
    ]
    assert missing.error == "not_found"
    assert (await provider.fetch_user_profile("")).error == "invalid_input"


@pytest.mark.anyio("asyncio")
async def test_update_user_profile_is_self_only(sql_store: SqlStoreClient) -> None:
    await sql_store.insert("users", {"user_id": "u1", "name": "Old", "x_url": "https://x.com/old"})
    events = EventBus()
    published: list[str] = []
    events.subscribe(Topic.USER_PROFILE_CHANGED, lambda: published.append("profile"))
    provider = UserPageProvider(sql_store, StaticSessionResolver("u1"), events)

    denied = await provider.update_user_profile(ProfileUpdate(name="Mallory"), user_id="u2")
    updated = await provider.update_user_profile(
        ProfileUpdate(name="  New  ", x_url="   ", other_url="https://example.com")
    )

    assert denied.error == "forbidden"
    assert updated.ok
    assert published == ["profile"]
    profile = await provider.fetch_user_profile("u1")
    assert profile.data is not None
    assert profile.data.name == "New"
    assert [link.category for link in profile.data.links] == ["other"]


@pytest.mark.anyio("asyncio")
async def test_profile_visibility_defaults_to_private(sql_store: SqlStoreClient) -> None:
    provider = ProfileVisibilityProvider(sql_store)

    result = await provider.fetch_visibility("u1")

    assert result.to_payload() == {
        "ok": True,
        "data": {"oshiList": "private", "oshiSeries": "private"},
    }


@pytest.mark.anyio("asyncio")
async def test_update_profile_visibility(sql_store: SqlStoreClient) -> None:
    await sql_store.insert("users", {"user_id": "u1"})
    provider = ProfileVisibilityProvider(sql_store)
    owner = Identity("u1")

    first = await provider.update_visibility(oshi_list="public", identity=owner)
    second = await provider.update_visibility(oshi_series="public", identity=owner)
    invalid = await provider.update_visibility(oshi_list="everyone", identity=owner)
    empty = await provider.update_visibility(identity=owner)

    assert first.data is not None
    assert (first.data.oshi_list, first.data.oshi_series) == ("public", "private")
    assert second.data is not None
    assert (second.data.oshi_list, second.data.oshi_series) == ("public", "public")
    assert invalid.error == "invalid_input"
    assert empty.error == "invalid_input"
    stored = await provider.fetch_visibility("u1")
    assert stored.data is not None and stored.data.oshi_series == "public"


class BrokenStore(SqlStoreClient):
    def __init__(self) -> None:
        pass

    async def select(self, table: str, columns: Sequence[str], **_: Any) -> list[Row]:
        raise StoreError("permission denied for table profile_visibility", code="42501")


@pytest.mark.anyio("asyncio")
async def test_profile_visibility_read_failure_falls_back() -> None:
    result = await ProfileVisibilityProvider(BrokenStore()).fetch_visibility("u1")

    assert result.ok
    assert result.data is not None and result.data.oshi_list == "private"

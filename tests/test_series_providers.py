"""User series favourites and the work (series) page."""

from __future__ import annotations

import pytest

from app.events import EventBus, Topic
from app.services.user_series import UserSeriesProvider
from app.services.work_page import WorkPageProvider
from app.session import Identity, StaticSessionResolver
from app.store import SqlStoreClient, StoreClient, eq


async def _seed(store: StoreClient) -> None:
    for user_id in ("fan", "viewer"):
        await store.insert("users", {"user_id": user_id, "name": user_id.title()})
    await store.insert("list", {"list_id": "1", "user_id": "viewer", "can_display": True})
    series = (
        ("s1", "Hero Academia", 10, "2024-05-01T00:00:00+00:00"),
        ("s2", "One Piece", 30, "2024-05-03T00:00:00+00:00"),
        ("s3", "Mystery Show", 20, "2024-05-02T00:00:00+00:00"),
    )
    for series_id, title, count, updated in series:
        await store.insert(
            "series",
            {"series_id": series_id, "title": title, "favorite_count": count, "update": updated},
        )
    episodes = (
        ("e1", "s1", 5, "2024-05-01T00:00:00+00:00", "https://img.example.com/e1.jpg"),
        ("e2", "s1", 5, "2024-05-03T00:00:00+00:00", "https://img.example.com/e2.jpg"),
        ("e3", "s1", 9, "2024-05-02T00:00:00+00:00", None),
        ("e4", "s2", 1, "2024-05-04T00:00:00+00:00", "https://img.example.com/e4.jpg"),
    )
    for movie_id, series_id, count, updated, thumbnail in episodes:
        await store.insert(
            "movie",
            {
                "movie_id": movie_id,
                "movie_title": f"Episode {movie_id}",
                "series_id": series_id,
                "favorite_count": count,
                "update": updated,
                "thumbnail_url": thumbnail,
            },
        )
    registrations = (
        ("s1", True, "2024-06-01T00:00:00+00:00"),
        ("s2", True, "2024-06-03T00:00:00+00:00"),
        ("s3", False, "2024-06-02T00:00:00+00:00"),
    )
    for series_id, can_display, created in registrations:
        await store.insert(
            "user_series",
            {
                "user_id": "fan",
                "series_id": series_id,
                "can_display": can_display,
                "created_at": created,
            },
        )
    await store.insert("list_movie", {"list_id": "1", "movie_id": "e3"})


@pytest.mark.anyio("asyncio")
async def test_hidden_series_visible_only_to_owner(sql_store: SqlStoreClient) -> None:
    await _seed(sql_store)
    provider = UserSeriesProvider(sql_store)

    stranger = await provider.fetch_series("fan", identity=Identity("viewer"))
    owner = await provider.fetch_series("fan", identity=Identity("fan"))

    assert stranger.data is not None
    assert {item.series_id for item in stranger.data} == {"s1", "s2"}
    assert owner.data is not None
    assert {item.series_id for item in owner.data} == {"s1", "s2", "s3"}


@pytest.mark.anyio("asyncio")
async def test_series_summary_newest_first_with_latest_thumbnail(
    sql_store: SqlStoreClient,
) -> None:
    await _seed(sql_store)
    provider = UserSeriesProvider(sql_store, summary_item_count=2)

    result = await provider.fetch_series_summary("fan", identity=Identity("fan"))

    assert result.data is not None
    assert [item.series_id for item in result.data.items] == ["s2", "s3"]
    assert result.data.items[0].thumbnail_url == "https://img.example.com/e4.jpg"

    anonymous = await provider.fetch_series_summary("fan", limit=5)
    assert anonymous.data is not None
    assert [item.series_id for item in anonymous.data.items] == ["s2", "s1"]
    assert anonymous.data.items[1].thumbnail_url == "https://img.example.com/e2.jpg"


@pytest.mark.anyio("asyncio")
async def test_series_list_sorting(sql_store: SqlStoreClient) -> None:
    await _seed(sql_store)
    provider = UserSeriesProvider(sql_store)
    owner = Identity("fan")

    by_count = await provider.fetch_series_list("fan", identity=owner)
    by_update = await provider.fetch_series_list(
        "fan", sort_key="update", descending=False, identity=owner
    )
    invalid = await provider.fetch_series_list("fan", sort_key="rating", identity=owner)

    assert by_count.data is not None
    assert [item.series_id for item in by_count.data] == ["s2", "s3", "s1"]
    assert by_update.data is not None
    assert [item.series_id for item in by_update.data] == ["s1", "s3", "s2"]
    assert invalid.error == "invalid_input"


@pytest.mark.anyio("asyncio")
async def test_register_unregister_and_toggle_publish(sql_store: SqlStoreClient) -> None:
    await _seed(sql_store)
    events = EventBus()
    published: list[str] = []
    events.subscribe(Topic.USER_SERIES_CHANGED, lambda: published.append("series"))
    provider = UserSeriesProvider(sql_store, StaticSessionResolver("viewer"), events)

    assert (await provider.register_series("s1")).ok
    assert (await provider.register_series("s1")).ok
    rows = await sql_store.select(
        "user_series", ("id",), filters=(eq("user_id", "viewer"), eq("series_id", "s1"))
    )
    assert len(rows) == 1

    toggled = await provider.toggle_series("s1")
    assert toggled.data is not None and toggled.data.is_favorited is False
    assert (await provider.unregister_series("s2")).ok
    assert published == ["series", "series", "series", "series"]

    anonymous = UserSeriesProvider(sql_store, StaticSessionResolver())
    assert (await anonymous.register_series("s1")).error == "auth_required"


@pytest.mark.anyio("asyncio")
async def test_series_overview(sql_store: SqlStoreClient) -> None:
    await _seed(sql_store)
    provider = WorkPageProvider(sql_store, StaticSessionResolver("fan"))

    overview = await provider.fetch_series_overview("s1")
    missing = await provider.fetch_series_overview("nope")

    assert overview.data is not None
    assert overview.data.title == "Hero Academia"
    assert overview.data.favorite_count == 10
    assert overview.data.is_favorited is True
    assert missing.error == "not_found"


@pytest.mark.anyio("asyncio")
async def test_episodes_sorted_with_oshi_flags(sql_store: SqlStoreClient) -> None:
    await _seed(sql_store)
    provider = WorkPageProvider(sql_store, StaticSessionResolver("viewer"))

    popular = await provider.fetch_episodes("s1", "popular")
    oldest = await provider.fetch_episodes("s1", "oldest")
    anonymous = await WorkPageProvider(sql_store).fetch_episodes("s1", "latest")

    assert popular.data is not None
    assert [episode.id for episode in popular.data] == ["e3", "e2", "e1"]
    assert [episode.id for episode in popular.data if episode.is_oshi] == ["e3"]
    assert oldest.data is not None
    assert [episode.id for episode in oldest.data] == ["e1", "e3", "e2"]
    assert anonymous.data is not None
    assert [episode.id for episode in anonymous.data] == ["e2", "e3", "e1"]
    assert not any(episode.is_oshi for episode in anonymous.data)


@pytest.mark.anyio("asyncio")
async def test_work_page_toggles(sql_store: SqlStoreClient) -> None:
    await _seed(sql_store)
    events = EventBus()
    published: list[str] = []
    events.subscribe(Topic.USER_SERIES_CHANGED, lambda: published.append("series"))
    events.subscribe(Topic.LIST_CATALOG_CHANGED, lambda: published.append("list"))
    provider = WorkPageProvider(sql_store, StaticSessionResolver("viewer"), events)

    favorite = await provider.toggle_series_favorite("s2")
    oshi = await provider.toggle_episode_oshi("e3")

    assert favorite.data is not None and favorite.data.is_favorited is True
    assert oshi.data is not None and oshi.data.is_oshi is False
    assert published == ["series", "list"]

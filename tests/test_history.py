"""History recording, suppression and the history page."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import httpx
import pytest

from app.services.history import HistoryRecorder, ViewingHistoryProvider, clamp_history_limit
from app.session import Identity, StaticSessionResolver
from app.store import Filter, Row, SqlStoreClient, StoreClient, eq


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class CountingStore(StoreClient):
    """Counts the writes a recorder issues."""

    def __init__(self) -> None:
        self.upserts: list[dict[str, Any]] = []
        self.failures = 0

    async def select(self, table: str, columns: Sequence[str], **_: Any) -> list[Row]:
        return []

    async def insert(self, table: str, row: Mapping[str, Any]) -> list[Row]:
        raise AssertionError("history writes must be upserts")

    async def upsert(
        self, table: str, row: Mapping[str, Any], *, on_conflict: Sequence[str]
    ) -> list[Row]:
        assert tuple(on_conflict) == ("user_id", "movie_id")
        if self.failures:
            self.failures -= 1
            raise httpx.ConnectError("store unreachable")
        self.upserts.append(dict(row))
        return [{"history_id": len(self.upserts), **row}]

    async def update(
        self, table: str, values: Mapping[str, Any], *, filters: Sequence[Filter]
    ) -> list[Row]:
        raise NotImplementedError

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        raise NotImplementedError


CLICKED_AT = "2024-05-01T12:00:00Z"


@pytest.mark.anyio("asyncio")
async def test_repeated_play_is_suppressed_but_other_sources_are_not() -> None:
    store = CountingStore()
    clock = FakeClock()
    recorder = HistoryRecorder(store, StaticSessionResolver("u1"), clock=clock)

    first = await recorder.record_view("m1", CLICKED_AT, "play")
    clock.now += 0.1
    repeat = await recorder.record_view("m1", CLICKED_AT, "play")
    navigate = await recorder.record_view("m1", CLICKED_AT, "navigate")

    assert first.data is not None and first.data.history_id == "1"
    assert repeat.ok and repeat.data is not None and repeat.data.suppressed is True
    assert navigate.data is not None and navigate.data.suppressed is False
    assert [row["movie_id"] for row in store.upserts] == ["m1", "m1"]


@pytest.mark.anyio("asyncio")
async def test_suppression_window_expires() -> None:
    store = CountingStore()
    clock = FakeClock()
    recorder = HistoryRecorder(
        store, StaticSessionResolver("u1"), suppress_window_ms=400, clock=clock
    )

    await recorder.record_view("m1", CLICKED_AT, "play")
    clock.now += 0.5
    later = await recorder.record_view("m1", CLICKED_AT, "play")

    assert later.data is not None and later.data.suppressed is False
    assert len(store.upserts) == 2


@pytest.mark.anyio("asyncio")
async def test_failed_write_does_not_suppress_the_retry() -> None:
    store = CountingStore()
    store.failures = 1
    clock = FakeClock()
    recorder = HistoryRecorder(store, StaticSessionResolver("u1"), clock=clock)

    failed = await recorder.record_view("m1", CLICKED_AT, "play")
    clock.now += 0.1
    retry = await recorder.record_view("m1", CLICKED_AT, "play")

    assert failed.error == "network"
    assert retry.data is not None and retry.data.suppressed is False
    assert len(store.upserts) == 1


@pytest.mark.anyio("asyncio")
async def test_expired_views_are_pruned_from_the_shared_map() -> None:
    store = CountingStore()
    clock = FakeClock()
    shared: dict[tuple[str, str, str], float] = {}
    recorder = HistoryRecorder(
        store,
        StaticSessionResolver("u1"),
        suppress_window_ms=400,
        clock=clock,
        recent_views=shared,
    )

    for index in range(50):
        await recorder.record_view(f"m{index}", CLICKED_AT, "play")
        clock.now += 0.5

    assert len(store.upserts) == 50
    assert list(shared) == [("u1", "m49", "play")]


@pytest.mark.anyio("asyncio")
async def test_record_view_validation_and_auth() -> None:
    store = CountingStore()
    recorder = HistoryRecorder(store, StaticSessionResolver("u1"))

    assert (await recorder.record_view("", CLICKED_AT)).error == "invalid_input"
    assert (await recorder.record_view("m1", "  ")).error == "invalid_input"
    assert (await recorder.record_view("m1", "yesterday")).error == "invalid_input"
    anonymous = HistoryRecorder(store, StaticSessionResolver())
    assert (await anonymous.record_view("m1", CLICKED_AT)).error == "auth_required"
    assert (await HistoryRecorder(None).record_view("m1", CLICKED_AT)).error == "not_configured"
    assert store.upserts == []


@pytest.mark.anyio("asyncio")
async def test_repeated_views_update_one_row(sql_store: SqlStoreClient) -> None:
    await sql_store.insert("users", {"user_id": "u1"})
    await sql_store.insert("movie", {"movie_id": "m1", "movie_title": "Episode 1"})
    recorder = HistoryRecorder(sql_store, suppress_window_ms=0)
    viewer = Identity("u1")

    first = await recorder.record_view("m1", "2024-05-01T10:00:00Z", "select", identity=viewer)
    second = await recorder.record_view("m1", "2024-05-02T10:00:00Z", "select", identity=viewer)

    rows = await sql_store.select(
        "history", ("history_id", "clicked_at"), filters=(eq("user_id", "u1"),)
    )
    assert first.data is not None and second.data is not None
    assert first.data.history_id == second.data.history_id
    assert len(rows) == 1
    assert rows[0]["clicked_at"].startswith("2024-05-02T10:00:00")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 30), (0, 1), (-5, 1), (10, 10), (10.7, 10), (99, 30), ("5", 5), ("x", 30), (True, 30)],
)
def test_clamp_history_limit(raw: object, expected: int) -> None:
    assert clamp_history_limit(raw) == expected


@pytest.mark.anyio("asyncio")
async def test_fetch_history_newest_first_with_oshi(sql_store: SqlStoreClient) -> None:
    await sql_store.insert("users", {"user_id": "u1"})
    await sql_store.insert("list", {"list_id": "1", "user_id": "u1", "can_display": False})
    for index in range(1, 4):
        await sql_store.insert(
            "movie",
            {
                "movie_id": f"m{index}",
                "movie_title": f"Episode {index}",
                "series_id": "s1",
                "favorite_count": index,
            },
        )
        await sql_store.insert(
            "history",
            {
                "user_id": "u1",
                "movie_id": f"m{index}",
                "clicked_at": f"2024-05-0{index}T00:00:00+00:00",
            },
        )
    await sql_store.insert(
        "history",
        {"user_id": "u1", "movie_id": "gone", "clicked_at": "2024-05-09T00:00:00+00:00"},
    )
    await sql_store.insert("list_movie", {"list_id": "1", "movie_id": "m2"})
    provider = ViewingHistoryProvider(sql_store, StaticSessionResolver("u1"))

    result = await provider.fetch_history()
    limited = await provider.fetch_history(2)

    assert result.data is not None
    assert [entry.movie_id for entry in result.data] == ["m3", "m2", "m1"]
    assert [entry.movie_id for entry in result.data if entry.is_oshi] == ["m2"]
    assert result.data[0].favorite_count == 3
    assert limited.data is not None
    assert [entry.movie_id for entry in limited.data] == ["m3"]
    anonymous = ViewingHistoryProvider(sql_store, StaticSessionResolver())
    assert (await anonymous.fetch_history()).error == "auth_required"

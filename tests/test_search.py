"""Title search controller behaviour."""

from __future__ import annotations

import pytest

from app.models import Result, SearchItem
from app.search import TitleSearchController, TitleSearchDataProvider
from app.store import SqlStoreClient


class CorpusProvider:
    def __init__(self, result: Result[list[SearchItem]]) -> None:
        self.calls = 0
        self._result = result

    async def fetch_all_items(self) -> Result[list[SearchItem]]:
        self.calls += 1
        return self._result


CORPUS = [SearchItem(id="1", title="Hero Academia"), SearchItem(id="2", title="One Piece")]


@pytest.mark.anyio("asyncio")
async def test_corpus_is_fetched_once_and_reused() -> None:
    provider = CorpusProvider(Result.success(CORPUS))
    controller = TitleSearchController(provider)

    controller.set_input("hero")
    first = await controller.apply_search()
    assert [item.id for item in first.results] == ["1"]
    assert first.status == "active"
    assert first.applied_query == "hero"

    controller.set_input("ＰＩＥＣＥ")
    second = await controller.apply_search()
    assert [item.id for item in second.results] == ["2"]
    assert second.normalized_query == "piece"
    assert provider.calls == 1


@pytest.mark.anyio("asyncio")
async def test_blank_query_returns_to_idle_without_fetching() -> None:
    provider = CorpusProvider(Result.success(CORPUS))
    controller = TitleSearchController(provider)

    controller.set_input("   ")
    state = await controller.apply_search()

    assert state.status == "idle"
    assert state.results == []
    assert provider.calls == 0


@pytest.mark.anyio("asyncio")
async def test_fetch_failure_sets_error_and_retries_next_time() -> None:
    provider = CorpusProvider(Result.failure("network"))
    controller = TitleSearchController(provider)

    controller.set_input("hero")
    state = await controller.apply_search()

    assert state.status == "error"
    assert state.error == "network"
    await controller.apply_search()
    assert provider.calls == 2


@pytest.mark.anyio("asyncio")
async def test_missing_provider_is_not_configured() -> None:
    controller = TitleSearchController()
    controller.set_input("hero")

    state = await controller.apply_search()

    assert (state.status, state.error) == ("error", "not_configured")


@pytest.mark.anyio("asyncio")
async def test_clear_and_update_cached_item() -> None:
    controller = TitleSearchController(CorpusProvider(Result.success(CORPUS)))
    controller.set_input("hero")
    await controller.apply_search()

    controller.update_cached_item("1", title="My Hero Academia")
    controller.clear_search()
    assert controller.state.status == "idle"
    assert controller.state.input_value == "hero"

    controller.set_input("my hero")
    state = await controller.apply_search()
    assert [item.title for item in state.results] == ["My Hero Academia"]


@pytest.mark.anyio("asyncio")
async def test_data_provider_reads_movies(sql_store: SqlStoreClient) -> None:
    await sql_store.insert("movie", {"movie_id": "m1", "movie_title": "Hero Academia"})
    await sql_store.insert("movie", {"movie_id": "m2", "movie_title": "One Piece", "favorite_count": 4})

    result = await TitleSearchDataProvider(sql_store).fetch_all_items()

    assert result.data is not None
    assert [(item.id, item.favorite_count) for item in result.data] == [("m1", 0), ("m2", 4)]

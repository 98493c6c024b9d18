"""Title search over the movie corpus, fetched once per controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Literal, Protocol

from .errors import ErrorKind
from .models import Result, SearchItem
from .services.base import BaseProvider, provider_operation
from .services.lists import count_of
from .utils import clean_id, normalize_search_text, title_matches

logger = logging.getLogger(__name__)

SearchStatus = Literal["idle", "loading", "active", "error"]

SEARCH_COLUMNS = (
    "movie_id",
    "movie_title",
    "thumbnail_url",
    "series_id",
    "update",
    "favorite_count",
)


class SearchCorpusProvider(Protocol):
    async def fetch_all_items(self) -> Result[list[SearchItem]]: ...


@dataclass(slots=True)
class TitleSearchState:
    input_value: str = ""
    applied_query: str = ""
    normalized_query: str = ""
    status: SearchStatus = "idle"
    error: ErrorKind | None = None
    results: list[SearchItem] = field(default_factory=list)


class TitleSearchDataProvider(BaseProvider):
    """Load every searchable movie in one query."""

    @provider_operation
    async def fetch_all_items(self) -> Result[list[SearchItem]]:
        rows = await self.store.select("movie", SEARCH_COLUMNS)
        return Result.success(
            [
                SearchItem(
                    id=clean_id(row.get("movie_id")),
                    title=str(row.get("movie_title")),
                    thumbnail_url=row.get("thumbnail_url"),
                    series_id=clean_id(row.get("series_id")) or None,
                    published_at=row.get("update"),
                    favorite_count=count_of(row.get("favorite_count")),
                )
                for row in rows
                if clean_id(row.get("movie_id")) and row.get("movie_title")
            ]
        )


class TitleSearchController:
    """Controller-local search state with a lazily loaded corpus.

    The corpus is fetched on the first non-empty search and then filtered
    locally for every later query until the controller is discarded.
    """

    def __init__(self, data_provider: SearchCorpusProvider | None = None) -> None:
        self._data_provider = data_provider
        self._state = TitleSearchState()
        self._corpus: list[SearchItem] | None = None

    @property
    def state(self) -> TitleSearchState:
        return self._state

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)

    def set_input(self, value: object) -> None:
        self._update(input_value="" if value is None else str(value))

    def clear_search(self) -> None:
        self._update(
            applied_query="",
            normalized_query="",
            status="idle",
            error=None,
            results=[],
        )

    async def apply_search(
        self, data_provider: SearchCorpusProvider | None = None
    ) -> TitleSearchState:
        normalized = normalize_search_text(self._state.input_value)
        if not normalized:
            self.clear_search()
            return self._state

        self._update(
            applied_query=self._state.input_value,
            normalized_query=normalized,
            status="loading",
            error=None,
        )

        if self._corpus is None:
            provider = data_provider or self._data_provider
            if provider is None:
                self._update(status="error", error="not_configured", results=[])
                return self._state
            result = await provider.fetch_all_items()
            if not result.ok:
                logger.warning("Loading search corpus failed: %s", result.error)
                self._update(status="error", error=result.error or "unknown", results=[])
                return self._state
            self._corpus = list(result.data or [])

        results = [item for item in self._corpus if title_matches(item.title, normalized)]
        self._update(status="active", error=None, results=results)
        return self._state

    def update_cached_item(self, item_id: object, **changes: Any) -> None:
        """Patch one cached corpus entry, e.g. after its oshi state changed."""

        if self._corpus is None:
            return
        target = clean_id(item_id)
        self._corpus = [
            item.model_copy(update=changes) if item.id == target else item
            for item in self._corpus
        ]

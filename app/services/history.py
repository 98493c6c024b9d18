"""Viewing history: recording clicks and reading them back."""

from __future__ import annotations

import logging
import time
from typing import Callable

from ..errors import ProviderError
from ..events import EventBus
from ..models import HistoryEntry, HistoryReceipt, Result
from ..session import Identity, SessionResolver
from ..store import Order, StoreClient, eq
from ..utils import clean_id, parse_timestamp, unique_ids
from .base import BaseProvider, provider_operation, require_id
from .lists import OwnListMixin, count_of, fetch_movies

logger = logging.getLogger(__name__)

DEFAULT_SUPPRESS_WINDOW_MS = 400
DEFAULT_PAGE_LIMIT = 30

RecentViews = dict[tuple[str, str, str], float]


class HistoryRecorder(BaseProvider):
    """Record that the viewer opened a movie.

    Repeats of the same ``(user, movie, source)`` inside the suppression window
    are acknowledged without a write. A different ``source`` is never
    suppressed against another one.
    """

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
        *,
        suppress_window_ms: int = DEFAULT_SUPPRESS_WINDOW_MS,
        clock: Callable[[], float] = time.monotonic,
        recent_views: RecentViews | None = None,
    ) -> None:
        super().__init__(store, session, events)
        self._suppress_window = max(0, suppress_window_ms) / 1000
        self._clock = clock
        # Shared between short-lived recorders (one per HTTP request).
        self._last_recorded: RecentViews = {} if recent_views is None else recent_views

    def _is_recent(self, key: tuple[str, str, str], now: float) -> bool:
        # Expired entries are dropped so the shared map only holds live windows.
        expired = [
            seen
            for seen, at in self._last_recorded.items()
            if now - at >= self._suppress_window
        ]
        for seen in expired:
            del self._last_recorded[seen]
        return key in self._last_recorded

    @provider_operation
    async def record_view(
        self,
        movie_id: object,
        clicked_at: object,
        source: object = "",
        *,
        identity: Identity | None = None,
    ) -> Result[HistoryReceipt]:
        target = require_id(movie_id)
        if not isinstance(clicked_at, str) or not clicked_at.strip():
            raise ProviderError("invalid_input")
        clicked = parse_timestamp(clicked_at)
        if clicked is None:
            raise ProviderError("invalid_input")
        tag = source if isinstance(source, str) else ""

        viewer = await self._require_identity(identity)
        key = (viewer.user_id, target, tag)
        now = self._clock()
        if self._is_recent(key, now):
            logger.debug("Suppressed repeated %r view of %s", tag, target)
            return Result.success(HistoryReceipt(suppressed=True))

        rows = await self.store.upsert(
            "history",
            {
                "user_id": viewer.user_id,
                "movie_id": target,
                "clicked_at": clicked.isoformat(),
            },
            on_conflict=("user_id", "movie_id"),
        )
        # Only a stored view opens a suppression window.
        self._last_recorded[key] = now
        history_id = clean_id(rows[0].get("history_id")) if rows else ""
        return Result.success(HistoryReceipt(history_id=history_id or None))


def clamp_history_limit(limit: object, maximum: int = DEFAULT_PAGE_LIMIT) -> int:
    """Clamp a requested page size into ``1..maximum``."""

    if isinstance(limit, bool):
        return maximum
    if isinstance(limit, str):
        try:
            limit = float(limit.strip())
        except ValueError:
            return maximum
    if not isinstance(limit, (int, float)) or limit != limit or limit in (
        float("inf"),
        float("-inf"),
    ):
        return maximum
    return max(1, min(maximum, int(limit)))


class ViewingHistoryProvider(OwnListMixin, BaseProvider):
    """The viewer's most recent clicks, newest first."""

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
        *,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ) -> None:
        super().__init__(store, session, events)
        self._init_own_list()
        self._page_limit = max(1, page_limit)

    @provider_operation
    async def fetch_history(
        self, limit: object = None, *, identity: Identity | None = None
    ) -> Result[list[HistoryEntry]]:
        viewer = await self._require_identity(identity)
        page_size = clamp_history_limit(limit, self._page_limit)

        rows = await self.store.select(
            "history",
            ("history_id", "movie_id", "clicked_at"),
            filters=(eq("user_id", viewer.user_id),),
            order=(Order("clicked_at", ascending=False),),
            limit=page_size,
        )
        movie_ids = unique_ids(row.get("movie_id") for row in rows)
        if not movie_ids:
            return Result.success([])
        movies = await fetch_movies(self.store, movie_ids)
        oshi_ids = await self._oshi_movie_ids(viewer, movies)

        entries: list[HistoryEntry] = []
        for row in rows:
            movie_id = clean_id(row.get("movie_id"))
            movie = movies.get(movie_id)
            if movie is None:
                continue
            entries.append(
                HistoryEntry(
                    history_id=clean_id(row.get("history_id")) or None,
                    movie_id=movie_id,
                    series_id=clean_id(movie.get("series_id")) or None,
                    title=str(movie.get("movie_title")),
                    thumbnail_url=movie.get("thumbnail_url"),
                    clicked_at=row.get("clicked_at"),
                    favorite_count=count_of(movie.get("favorite_count")),
                    is_oshi=movie_id in oshi_ids,
                )
            )
        return Result.success(entries[:page_size])

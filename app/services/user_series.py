"""Series a user has registered as favourites."""

from __future__ import annotations

from typing import Literal

from ..errors import ProviderError
from ..events import EventBus, Topic
from ..models import FavoriteState, Result, SeriesItem, SeriesSummary
from ..session import Identity, SessionResolver
from ..store import Order, Row, StoreClient, eq, in_
from ..utils import clean_id, parse_timestamp, unique_ids
from .base import BaseProvider, provider_operation, require_id
from .lists import optional_count
from .toggle import USER_SERIES, MembershipToggle

SeriesSortKey = Literal["favorite_count", "update", "title"]
SERIES_SORT_KEYS: tuple[SeriesSortKey, ...] = ("favorite_count", "update", "title")
SERIES_COLUMNS = ("series_id", "title", "favorite_count", "update")


def _series_item(row: Row, thumbnail_url: str | None = None) -> SeriesItem:
    return SeriesItem(
        series_id=clean_id(row.get("series_id")),
        title=str(row.get("title")),
        favorite_count=optional_count(row.get("favorite_count")),
        updated_at=row.get("update"),
        thumbnail_url=thumbnail_url,
    )


class UserSeriesProvider(BaseProvider):
    """Read another user's series favourites and edit the viewer's own.

    Rows flagged ``can_display = false`` are hidden from everyone but their
    owner.
    """

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
        *,
        summary_item_count: int = 3,
    ) -> None:
        super().__init__(store, session, events)
        self._series = MembershipToggle(store, USER_SERIES)
        self._summary_item_count = max(0, summary_item_count)

    async def _visible_edges(
        self,
        target: str,
        viewer: Identity | None,
        *,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[str]:
        filters = [eq("user_id", target)]
        if viewer is None or not viewer.is_user(target):
            filters.append(eq("can_display", True))
        edges = await self.store.select(
            "user_series",
            ("series_id", "can_display"),
            filters=tuple(filters),
            order=(Order("created_at", ascending=False),) if newest_first else (),
            limit=limit,
        )
        return unique_ids(edge.get("series_id") for edge in edges)

    async def _series_rows(self, series_ids: list[str]) -> dict[str, Row]:
        if not series_ids:
            return {}
        rows = await self.store.select(
            "series", SERIES_COLUMNS, filters=(in_("series_id", series_ids),)
        )
        return {
            clean_id(row.get("series_id")): row
            for row in rows
            if clean_id(row.get("series_id")) and row.get("title")
        }

    async def _latest_thumbnails(self, series_ids: list[str]) -> dict[str, str]:
        """Pick the newest episode thumbnail per series in one query."""

        if not series_ids:
            return {}
        rows = await self.store.select(
            "movie",
            ("series_id", "thumbnail_url", "update"),
            filters=(in_("series_id", series_ids),),
        )
        latest: dict[str, tuple[object, str]] = {}
        for row in rows:
            series_id = clean_id(row.get("series_id"))
            thumbnail = row.get("thumbnail_url")
            if not series_id or not thumbnail:
                continue
            published = parse_timestamp(row.get("update"))
            current = latest.get(series_id)
            if current is None or (
                published is not None
                and (current[0] is None or published > current[0])  # type: ignore[operator]
            ):
                latest[series_id] = (published, str(thumbnail))
        return {series_id: entry[1] for series_id, entry in latest.items()}

    @provider_operation
    async def fetch_series(
        self, user_id: object, *, identity: Identity | None = None
    ) -> Result[list[SeriesItem]]:
        target = require_id(user_id)
        viewer = await self._optional_identity(identity)
        series_ids = await self._visible_edges(target, viewer)
        rows = await self._series_rows(series_ids)
        return Result.success(
            [_series_item(rows[series_id]) for series_id in series_ids if series_id in rows]
        )

    @provider_operation
    async def fetch_series_summary(
        self,
        target_user_id: object,
        *,
        limit: int | None = None,
        identity: Identity | None = None,
    ) -> Result[SeriesSummary]:
        """Newest registrations, each with its latest episode thumbnail."""

        target = require_id(target_user_id)
        resolved_limit = self._summary_item_count if limit is None else max(0, int(limit))
        if resolved_limit <= 0:
            return Result.success(SeriesSummary())
        viewer = await self._optional_identity(identity)
        series_ids = await self._visible_edges(
            target, viewer, newest_first=True, limit=resolved_limit
        )
        rows = await self._series_rows(series_ids)
        thumbnails = await self._latest_thumbnails(list(rows))
        items = [
            _series_item(rows[series_id], thumbnails.get(series_id))
            for series_id in series_ids
            if series_id in rows
        ]
        return Result.success(SeriesSummary(items=items))

    @provider_operation
    async def fetch_series_list(
        self,
        target_user_id: object,
        *,
        sort_key: str = "favorite_count",
        descending: bool = True,
        identity: Identity | None = None,
    ) -> Result[list[SeriesItem]]:
        target = require_id(target_user_id)
        if sort_key not in SERIES_SORT_KEYS:
            raise ProviderError("invalid_input")
        viewer = await self._optional_identity(identity)
        series_ids = await self._visible_edges(target, viewer)
        rows = await self._series_rows(series_ids)
        thumbnails = await self._latest_thumbnails(list(rows))
        items = [
            _series_item(rows[series_id], thumbnails.get(series_id))
            for series_id in series_ids
            if series_id in rows
        ]

        def _key(item: SeriesItem) -> object:
            if sort_key == "favorite_count":
                return item.favorite_count or 0
            if sort_key == "title":
                return item.title.casefold()
            published = parse_timestamp(item.updated_at)
            return published.timestamp() if published is not None else float("-inf")

        items.sort(key=_key, reverse=descending)
        return Result.success(items)

    @provider_operation
    async def register_series(
        self, series_id: object, *, identity: Identity | None = None
    ) -> Result[None]:
        target = require_id(series_id)
        viewer = await self._require_identity(identity)
        await self.store.upsert(
            "user_series",
            {"user_id": viewer.user_id, "series_id": target},
            on_conflict=("user_id", "series_id"),
        )
        self._publish(Topic.USER_SERIES_CHANGED)
        return Result.success(None)

    @provider_operation
    async def unregister_series(
        self, series_id: object, *, identity: Identity | None = None
    ) -> Result[None]:
        target = require_id(series_id)
        viewer = await self._require_identity(identity)
        await self.store.delete(
            "user_series",
            filters=(eq("user_id", viewer.user_id), eq("series_id", target)),
        )
        self._publish(Topic.USER_SERIES_CHANGED)
        return Result.success(None)

    @provider_operation
    async def toggle_series(
        self, series_id: object, *, identity: Identity | None = None
    ) -> Result[FavoriteState]:
        target = require_id(series_id)
        viewer = await self._require_identity(identity)
        state = await self._series.flip(viewer.user_id, target)
        self._publish(Topic.USER_SERIES_CHANGED)
        return Result.success(FavoriteState(is_favorited=state.active))

"""Series (work) page: overview, episode list and the two toggles on it."""

from __future__ import annotations

from ..errors import ProviderError
from ..events import EventBus, Topic
from ..models import Episode, FavoriteState, OshiState, Result, SeriesOverview
from ..policies import apply_sort_order, normalize_sort_order
from ..session import Identity, SessionResolver
from ..store import Order, StoreClient, eq
from ..utils import clean_id, parse_timestamp
from .base import BaseProvider, provider_operation, require_id
from .lists import MOVIE_COLUMNS, OwnListMixin, count_of, has_movie_fields
from .toggle import USER_SERIES, MembershipToggle


class WorkPageProvider(OwnListMixin, BaseProvider):
    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
    ) -> None:
        super().__init__(store, session, events)
        self._init_own_list()
        self._series = MembershipToggle(store, USER_SERIES)

    @provider_operation
    async def fetch_series_overview(
        self, series_id: object, *, identity: Identity | None = None
    ) -> Result[SeriesOverview]:
        target = require_id(series_id)
        rows = await self.store.select(
            "series",
            ("series_id", "title", "favorite_count"),
            filters=(eq("series_id", target),),
            limit=1,
        )
        if not rows or not rows[0].get("title"):
            raise ProviderError("not_found")
        row = rows[0]

        viewer = await self._optional_identity(identity)
        is_favorited = False
        if viewer is not None:
            is_favorited = await self._series.contains(viewer.user_id, target)
        return Result.success(
            SeriesOverview(
                id=target,
                title=str(row["title"]),
                favorite_count=count_of(row.get("favorite_count")),
                is_favorited=is_favorited,
            )
        )

    @provider_operation
    async def fetch_episodes(
        self,
        series_id: object,
        sort_order: object = None,
        *,
        identity: Identity | None = None,
    ) -> Result[list[Episode]]:
        """List a series' episodes with the viewer's oshi flags merged in."""

        target = require_id(series_id)
        order = normalize_sort_order(sort_order)
        rows = await self.store.select(
            "movie",
            MOVIE_COLUMNS,
            filters=(eq("series_id", target),),
            order=(Order("update", ascending=False),),
        )
        movies = [row for row in rows if has_movie_fields(row)]
        viewer = await self._optional_identity(identity)
        oshi_ids = await self._oshi_movie_ids(viewer, (row["movie_id"] for row in movies))

        episodes = [
            Episode(
                id=clean_id(row["movie_id"]),
                title=str(row["movie_title"]),
                thumbnail_url=row.get("thumbnail_url"),
                published_at=row.get("update"),
                video_url=row.get("url"),
                favorite_count=count_of(row.get("favorite_count")),
                is_oshi=clean_id(row["movie_id"]) in oshi_ids,
            )
            for row in movies
        ]
        return Result.success(
            apply_sort_order(
                episodes,
                order,
                count=lambda episode: episode.favorite_count,
                recency=lambda episode: parse_timestamp(episode.published_at),
            )
        )

    @provider_operation
    async def toggle_series_favorite(
        self, series_id: object, *, identity: Identity | None = None
    ) -> Result[FavoriteState]:
        target = require_id(series_id)
        viewer = await self._require_identity(identity)
        state = await self._series.flip(viewer.user_id, target)
        self._publish(Topic.USER_SERIES_CHANGED)
        return Result.success(FavoriteState(is_favorited=state.active))

    @provider_operation
    async def toggle_episode_oshi(
        self, movie_id: object, *, identity: Identity | None = None
    ) -> Result[OshiState]:
        target = require_id(movie_id)
        viewer = await self._require_identity(identity)
        return Result.success(await self._flip_oshi(viewer, target))

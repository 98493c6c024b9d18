"""Row helpers and list operations reused by several providers."""

from __future__ import annotations

from typing import Any, Iterable

from ..errors import ProviderError
from ..events import Topic
from ..models import FavoriteState, MovieItem, OshiState, Result
from ..policies import visibility_from_flag
from ..session import Identity
from ..store import Order, Row, StoreClient, eq, in_
from ..utils import clean_id, unique_ids
from .base import PrimaryListCache, provider_operation, require_id
from .toggle import LIST_MOVIE, USER_LIST, MembershipToggle

LIST_COLUMNS = ("list_id", "user_id", "favorite_count", "can_display")
MOVIE_COLUMNS = (
    "movie_id",
    "movie_title",
    "url",
    "thumbnail_url",
    "update",
    "series_id",
    "favorite_count",
)


def count_of(value: Any) -> int:
    """Return a non-negative integer count from a store value."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return max(0, int(value))


def optional_count(value: Any) -> int | None:
    if value is None:
        return None
    return count_of(value)


def has_movie_fields(row: Row | None) -> bool:
    return bool(row and clean_id(row.get("movie_id")) and row.get("movie_title"))


def movie_item(row: Row, *, is_oshi: bool) -> MovieItem:
    return MovieItem(
        id=clean_id(row.get("movie_id")),
        title=str(row.get("movie_title")),
        thumbnail_url=row.get("thumbnail_url"),
        published_at=row.get("update"),
        video_url=row.get("url"),
        series_id=clean_id(row.get("series_id")) or None,
        is_oshi=is_oshi,
    )


async def fetch_list_row(store: StoreClient, list_id: str) -> Row | None:
    rows = await store.select(
        "list", LIST_COLUMNS, filters=(eq("list_id", list_id),), limit=1
    )
    return rows[0] if rows else None


async def fetch_user_names(store: StoreClient, user_ids: Iterable[Any]) -> dict[str, str]:
    ids = unique_ids(user_ids)
    if not ids:
        return {}
    rows = await store.select("users", ("user_id", "name"), filters=(in_("user_id", ids),))
    return {clean_id(row.get("user_id")): str(row.get("name") or "") for row in rows}


async def fetch_movies(store: StoreClient, movie_ids: Iterable[Any]) -> dict[str, Row]:
    """Fetch movie rows by id in one query, dropping incomplete rows."""

    ids = unique_ids(movie_ids)
    if not ids:
        return {}
    rows = await store.select("movie", MOVIE_COLUMNS, filters=(in_("movie_id", ids),))
    return {clean_id(row["movie_id"]): row for row in rows if has_movie_fields(row)}


async def fetch_list_movie_rows(
    store: StoreClient,
    list_id: str,
    *,
    newest_first: bool = False,
    limit: int | None = None,
) -> list[Row]:
    """Return the movies in a list in membership order."""

    order = (Order("created_at", ascending=False),) if newest_first else ()
    edges = await store.select(
        "list_movie",
        ("movie_id",),
        filters=(eq("list_id", list_id),),
        order=order,
        limit=limit,
    )
    movie_ids = unique_ids(edge.get("movie_id") for edge in edges)
    movies = await fetch_movies(store, movie_ids)
    return [movies[movie_id] for movie_id in movie_ids if movie_id in movies]


def is_public(row: Row) -> bool:
    return visibility_from_flag(row.get("can_display")) == "public"


class ListFavoriteMixin:
    """``toggle_favorite`` for providers that show other users' lists."""

    _store: StoreClient | None
    _favorites: MembershipToggle

    def _init_list_favorites(self) -> None:
        self._favorites = MembershipToggle(self._store, USER_LIST)

    @provider_operation
    async def toggle_favorite(
        self, list_id: object, *, identity: Identity | None = None
    ) -> Result[FavoriteState]:
        """Favourite or un-favourite someone else's public list."""

        target = require_id(list_id)
        viewer = await self._require_identity(identity)  # type: ignore[attr-defined]
        row = await fetch_list_row(self._store, target)  # type: ignore[arg-type]
        if row is None:
            raise ProviderError("invalid_input")
        if viewer.is_user(row.get("user_id")):
            raise ProviderError("forbidden")
        if not is_public(row) and not await self._favorites.contains(viewer.user_id, target):
            # A private list can still be dropped from favourites, never added.
            raise ProviderError("invalid_input")
        state = await self._favorites.flip(viewer.user_id, target)
        self._publish(Topic.LIST_CATALOG_CHANGED)  # type: ignore[attr-defined]
        return Result.success(FavoriteState(is_favorited=state.active))


class OwnListMixin:
    """Access to the signed-in user's primary list and its oshi toggle."""

    _store: StoreClient | None
    _primary_list: PrimaryListCache
    _list_movies: MembershipToggle

    def _init_own_list(self) -> None:
        self._primary_list = PrimaryListCache()
        self._list_movies = MembershipToggle(self._store, LIST_MOVIE)

    async def _own_list_id(self, viewer: Identity) -> str | None:
        return await self._primary_list.resolve(self._store, viewer.user_id)  # type: ignore[arg-type]

    async def _oshi_movie_ids(
        self, viewer: Identity | None, movie_ids: Iterable[Any]
    ) -> set[str]:
        if viewer is None:
            return set()
        list_id = await self._own_list_id(viewer)
        if list_id is None:
            return set()
        return await self._list_movies.targets_of(list_id, movie_ids)

    async def _flip_oshi(self, viewer: Identity, movie_id: str) -> OshiState:
        list_id = await self._own_list_id(viewer)
        if list_id is None:
            raise ProviderError("not_found")
        state = await self._list_movies.flip(list_id, movie_id)
        self._publish(Topic.LIST_CATALOG_CHANGED)  # type: ignore[attr-defined]
        return OshiState(is_oshi=state.active)

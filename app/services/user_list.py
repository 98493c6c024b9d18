"""Another user's primary list, as summarised on their profile page."""

from __future__ import annotations

from ..events import EventBus
from ..models import ListItemPreview, Result, UserListSummary
from ..session import Identity, SessionResolver
from ..store import Order, StoreClient, eq
from ..utils import clean_id
from .base import BaseProvider, provider_operation, require_id
from .lists import (
    LIST_COLUMNS,
    ListFavoriteMixin,
    count_of,
    fetch_list_movie_rows,
    is_public,
)

DEFAULT_SUMMARY_ITEMS = 3


class UserOshiListProvider(ListFavoriteMixin, BaseProvider):
    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
        *,
        summary_item_count: int = DEFAULT_SUMMARY_ITEMS,
    ) -> None:
        super().__init__(store, session, events)
        self._init_list_favorites()
        self._summary_item_count = max(0, summary_item_count)

    @provider_operation
    async def fetch_list_summary(
        self,
        target_user_id: object,
        *,
        identity: Identity | None = None,
    ) -> Result[UserListSummary]:
        """Summarise ``target_user_id``'s primary list.

        ``status`` is ``not_found`` for unknown users, ``none`` when the user
        has no list, ``private`` when the list is hidden from the viewer and
        ``public`` otherwise. Only ``public`` summaries carry items.
        """

        target = require_id(target_user_id)
        viewer = await self._optional_identity(identity)
        is_owner = viewer is not None and viewer.is_user(target)

        list_rows = await self.store.select(
            "list",
            LIST_COLUMNS,
            filters=(eq("user_id", target),),
            order=(Order("list_id"),),
            limit=1,
        )
        if not list_rows:
            users = await self.store.select(
                "users", ("user_id",), filters=(eq("user_id", target),), limit=1
            )
            status = "none" if users else "not_found"
            return Result.success(UserListSummary(status=status))

        row = list_rows[0]
        if not is_owner and not is_public(row):
            return Result.success(UserListSummary(status="private"))
        list_id = clean_id(row.get("list_id"))
        if not list_id:
            return Result.success(UserListSummary(status="none"))

        items: list[ListItemPreview] = []
        if self._summary_item_count > 0:
            movies = await fetch_list_movie_rows(
                self.store, list_id, newest_first=True, limit=self._summary_item_count
            )
            items = [
                ListItemPreview(
                    movie_id=clean_id(movie.get("movie_id")),
                    title=str(movie.get("movie_title")),
                )
                for movie in movies
            ]

        is_favorited = False
        if viewer is not None and not is_owner:
            is_favorited = await self._favorites.contains(viewer.user_id, list_id)

        return Result.success(
            UserListSummary(
                list_id=list_id,
                status="public",
                favorite_count=count_of(row.get("favorite_count")),
                is_favorited=is_favorited,
                items=items,
            )
        )

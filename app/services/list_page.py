"""Detail page of a single oshi list."""

from __future__ import annotations

import asyncio

from ..errors import ProviderError
from ..events import EventBus, Topic
from ..models import ListPage, ListSummary, MovieItem, Result, VisibilityState
from ..policies import parse_visibility, visibility_from_flag, visibility_to_flag
from ..session import Identity, SessionResolver
from ..store import Row, StoreClient, eq
from ..utils import clean_id
from .base import BaseProvider, provider_operation, require_id
from .lists import (
    ListFavoriteMixin,
    OwnListMixin,
    count_of,
    fetch_list_movie_rows,
    fetch_list_row,
    fetch_user_names,
    is_public,
    movie_item,
)


class OshiListPageProvider(ListFavoriteMixin, OwnListMixin, BaseProvider):
    """Summary, items and visibility of one list, as seen by the viewer.

    A private list is only readable by its owner; everybody else gets
    ``forbidden``.
    """

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
    ) -> None:
        super().__init__(store, session, events)
        self._init_list_favorites()
        self._init_own_list()

    async def _readable_row(self, list_id: str, viewer: Identity | None) -> Row:
        row = await fetch_list_row(self.store, list_id)
        if row is None:
            raise ProviderError("not_found")
        is_owner = viewer is not None and viewer.is_user(row.get("user_id"))
        if not is_owner and not is_public(row):
            raise ProviderError("forbidden")
        return row

    async def _summary(
        self, list_id: str, row: Row, viewer: Identity | None
    ) -> ListSummary:
        owner_id = clean_id(row.get("user_id"))
        names = await fetch_user_names(self.store, [owner_id])
        is_favorited = False
        if viewer is not None and not viewer.is_user(owner_id):
            is_favorited = await self._favorites.contains(viewer.user_id, list_id)
        return ListSummary(
            list_id=list_id,
            user_id=owner_id,
            name=names.get(owner_id, ""),
            favorite_count=count_of(row.get("favorite_count")),
            is_favorited=is_favorited,
            is_own=viewer is not None and viewer.is_user(owner_id),
            visibility=visibility_from_flag(row.get("can_display")),
        )

    async def _items(self, list_id: str, viewer: Identity | None) -> list[MovieItem]:
        movies = await fetch_list_movie_rows(self.store, list_id)
        oshi_ids = await self._oshi_movie_ids(
            viewer, (row.get("movie_id") for row in movies)
        )
        return [
            movie_item(row, is_oshi=clean_id(row.get("movie_id")) in oshi_ids)
            for row in movies
        ]

    @provider_operation
    async def fetch_list_summary(
        self, list_id: object, *, identity: Identity | None = None
    ) -> Result[ListSummary]:
        target = require_id(list_id)
        viewer = await self._optional_identity(identity)
        row = await self._readable_row(target, viewer)
        return Result.success(await self._summary(target, row, viewer))

    @provider_operation
    async def fetch_list_items(
        self, list_id: object, *, identity: Identity | None = None
    ) -> Result[list[MovieItem]]:
        target = require_id(list_id)
        viewer = await self._optional_identity(identity)
        await self._readable_row(target, viewer)
        return Result.success(await self._items(target, viewer))

    @provider_operation
    async def fetch_list_page(
        self, list_id: object, *, identity: Identity | None = None
    ) -> Result[ListPage]:
        """Fetch summary and items concurrently for one page render."""

        target = require_id(list_id)
        viewer = await self._optional_identity(identity)
        row = await self._readable_row(target, viewer)
        # Both halves run to completion before a failure is reported.
        summary, items = await asyncio.gather(
            self._summary(target, row, viewer),
            self._items(target, viewer),
            return_exceptions=True,
        )
        if isinstance(summary, BaseException):
            raise summary
        if isinstance(items, BaseException):
            raise items
        return Result.success(ListPage(summary=summary, items=items))

    @provider_operation
    async def fetch_visibility(self, list_id: object) -> Result[VisibilityState]:
        target = require_id(list_id)
        row = await fetch_list_row(self.store, target)
        if row is None:
            raise ProviderError("not_found")
        return Result.success(
            VisibilityState(visibility=visibility_from_flag(row.get("can_display")))
        )

    @provider_operation
    async def update_visibility(
        self,
        list_id: object,
        visibility: object,
        *,
        identity: Identity | None = None,
    ) -> Result[VisibilityState]:
        target = require_id(list_id)
        requested = parse_visibility(visibility)
        if requested is None:
            raise ProviderError("invalid_input")
        viewer = await self._require_identity(identity)

        row = await fetch_list_row(self.store, target)
        if row is None:
            raise ProviderError("not_found")
        if not viewer.is_user(row.get("user_id")):
            raise ProviderError("forbidden")

        updated = await self.store.update(
            "list",
            {"can_display": visibility_to_flag(requested)},
            filters=(eq("list_id", target),),
        )
        if not updated:
            raise ProviderError("not_found")
        self._publish(Topic.LIST_CATALOG_CHANGED)
        return Result.success(
            VisibilityState(visibility=visibility_from_flag(updated[0].get("can_display")))
        )

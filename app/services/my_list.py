"""The signed-in user's own primary oshi list."""

from __future__ import annotations

from ..errors import ProviderError
from ..events import EventBus, Topic
from ..models import MovieItem, OshiState, Result, VisibilityState
from ..policies import parse_visibility, visibility_from_flag, visibility_to_flag
from ..session import Identity, SessionResolver
from ..store import StoreClient, eq
from .base import BaseProvider, provider_operation, require_id
from .lists import OwnListMixin, fetch_list_movie_rows, fetch_list_row, movie_item


class MyOshiListProvider(OwnListMixin, BaseProvider):
    """Read and edit the viewer's primary list.

    The primary list id is looked up once per provider instance and reused by
    later calls for the same user.
    """

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
    ) -> None:
        super().__init__(store, session, events)
        self._init_own_list()

    @provider_operation
    async def fetch_oshi_list(
        self, *, identity: Identity | None = None
    ) -> Result[list[MovieItem]]:
        viewer = await self._require_identity(identity)
        list_id = await self._own_list_id(viewer)
        if list_id is None:
            return Result.success([])
        movies = await fetch_list_movie_rows(self.store, list_id)
        return Result.success([movie_item(row, is_oshi=True) for row in movies])

    @provider_operation
    async def toggle_movie_oshi(
        self, movie_id: object, *, identity: Identity | None = None
    ) -> Result[OshiState]:
        target = require_id(movie_id)
        viewer = await self._require_identity(identity)
        return Result.success(await self._flip_oshi(viewer, target))

    @provider_operation
    async def fetch_visibility(
        self, *, identity: Identity | None = None
    ) -> Result[VisibilityState]:
        viewer = await self._require_identity(identity)
        list_id = await self._own_list_id(viewer)
        if list_id is None:
            raise ProviderError("not_found")
        row = await fetch_list_row(self.store, list_id)
        if row is None:
            raise ProviderError("not_found")
        return Result.success(
            VisibilityState(visibility=visibility_from_flag(row.get("can_display")))
        )

    @provider_operation
    async def update_visibility(
        self, visibility: object, *, identity: Identity | None = None
    ) -> Result[VisibilityState]:
        requested = parse_visibility(visibility)
        if requested is None:
            raise ProviderError("invalid_input")
        viewer = await self._require_identity(identity)
        list_id = await self._own_list_id(viewer)
        if list_id is None:
            raise ProviderError("not_found")

        updated = await self.store.update(
            "list",
            {"can_display": visibility_to_flag(requested)},
            filters=(eq("list_id", list_id),),
        )
        if not updated:
            raise ProviderError("not_found")
        self._publish(Topic.LIST_CATALOG_CHANGED)
        return Result.success(
            VisibilityState(visibility=visibility_from_flag(updated[0].get("can_display")))
        )

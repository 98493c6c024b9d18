"""Public catalog of oshi lists and the viewer's favourited lists."""

from __future__ import annotations

from ..events import EventBus
from ..models import CatalogEntry, FavoriteListEntry, Result
from ..policies import apply_sort_order, normalize_sort_order, visibility_from_flag
from ..session import Identity, SessionResolver
from ..store import Order, Row, StoreClient, eq, in_
from ..utils import clean_id, id_sort_key, unique_ids
from .base import BaseProvider, provider_operation
from .lists import LIST_COLUMNS, ListFavoriteMixin, count_of, fetch_user_names, is_public


class OshiListCatalogProvider(ListFavoriteMixin, BaseProvider):
    """Browse every visible list, enriched with the viewer's favourite state."""

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
    ) -> None:
        super().__init__(store, session, events)
        self._init_list_favorites()

    @provider_operation
    async def fetch_catalog(
        self,
        sort_order: object = None,
        *,
        identity: Identity | None = None,
    ) -> Result[list[CatalogEntry]]:
        order = normalize_sort_order(sort_order)
        viewer = await self._optional_identity(identity)

        rows: dict[str, Row] = {}
        public_rows = await self.store.select(
            "list", LIST_COLUMNS, filters=(eq("can_display", True),)
        )
        for row in public_rows:
            list_id = clean_id(row.get("list_id"))
            if list_id and is_public(row):
                rows[list_id] = row
        if viewer is not None:
            # Owners always see their own lists, private or not.
            own_rows = await self.store.select(
                "list", LIST_COLUMNS, filters=(eq("user_id", viewer.user_id),)
            )
            for row in own_rows:
                list_id = clean_id(row.get("list_id"))
                if list_id:
                    rows[list_id] = row

        names = await fetch_user_names(
            self.store, (row.get("user_id") for row in rows.values())
        )
        favorited: set[str] = set()
        if viewer is not None:
            favorited = await self._favorites.targets_of(viewer.user_id, rows)

        entries = [
            CatalogEntry(
                list_id=list_id,
                user_id=clean_id(row.get("user_id")),
                name=names.get(clean_id(row.get("user_id")), ""),
                favorite_count=count_of(row.get("favorite_count")),
                is_favorited=list_id in favorited,
                is_own=viewer is not None and viewer.is_user(row.get("user_id")),
                visibility=visibility_from_flag(row.get("can_display")),
            )
            for list_id, row in rows.items()
        ]
        return Result.success(
            apply_sort_order(
                entries,
                order,
                count=lambda entry: entry.favorite_count,
                recency=lambda entry: id_sort_key(entry.list_id),
            )
        )


class OshiFavoritesProvider(ListFavoriteMixin, BaseProvider):
    """The lists the signed-in user has favourited."""

    def __init__(
        self,
        store: StoreClient | None,
        session: SessionResolver | None = None,
        events: EventBus | None = None,
    ) -> None:
        super().__init__(store, session, events)
        self._init_list_favorites()

    @provider_operation
    async def fetch_favorites(
        self, *, identity: Identity | None = None
    ) -> Result[list[FavoriteListEntry]]:
        viewer = await self._require_identity(identity)

        # Most recently favourited first.
        edges = await self.store.select(
            "user_list",
            ("list_id",),
            filters=(eq("user_id", viewer.user_id),),
            order=(Order("created_at", ascending=False), Order("id", ascending=False)),
        )
        list_ids = unique_ids(edge.get("list_id") for edge in edges)
        if not list_ids:
            return Result.success([])

        list_rows = await self.store.select(
            "list",
            LIST_COLUMNS,
            filters=(in_("list_id", list_ids), eq("can_display", True)),
        )
        by_id = {
            clean_id(row.get("list_id")): row
            for row in list_rows
            if is_public(row) and clean_id(row.get("user_id"))
        }
        names = await fetch_user_names(
            self.store, (row.get("user_id") for row in by_id.values())
        )

        items = [
            FavoriteListEntry(
                list_id=list_id,
                user_id=clean_id(by_id[list_id].get("user_id")),
                name=names.get(clean_id(by_id[list_id].get("user_id")), ""),
                favorite_count=count_of(by_id[list_id].get("favorite_count")),
            )
            for list_id in list_ids
            if list_id in by_id
        ]
        return Result.success(items)

"""Check-then-act membership toggles shared by every favourite/oshi button."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Literal

from ..errors import ProviderError, StoreError, is_conflict_error
from ..models import Result
from ..store import StoreClient, eq, in_
from ..utils import clean_id, unique_ids
from .base import provider_operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MembershipRelation:
    """A two-column edge table with a uniqueness constraint on the pair."""

    table: str
    owner_column: str
    target_column: str


LIST_MOVIE = MembershipRelation("list_movie", "list_id", "movie_id")
USER_LIST = MembershipRelation("user_list", "user_id", "list_id")
USER_SERIES = MembershipRelation("user_series", "user_id", "series_id")


@dataclass(frozen=True, slots=True)
class ToggleState:
    active: bool

    @property
    def state(self) -> Literal["on", "off"]:
        return "on" if self.active else "off"


class MembershipToggle:
    """Flip and query one membership relation.

    ``flip`` raises on failure and is meant for providers composing larger
    operations; ``toggle`` is the total variant returning a :class:`Result`.
    """

    def __init__(self, store: StoreClient | None, relation: MembershipRelation):
        self._store = store
        self._relation = relation

    @property
    def relation(self) -> MembershipRelation:
        return self._relation

    def _keys(self, owner_key: object, target_key: object) -> dict[str, str]:
        owner = clean_id(owner_key)
        target = clean_id(target_key)
        if not owner or not target:
            raise ProviderError("invalid_input")
        return {self._relation.owner_column: owner, self._relation.target_column: target}

    async def flip(self, owner_key: object, target_key: object) -> ToggleState:
        if self._store is None:
            raise ProviderError("not_configured")
        match = self._keys(owner_key, target_key)
        try:
            active = await self._store.toggle_membership(self._relation.table, match)
        except StoreError as exc:
            if is_conflict_error(exc):
                # Another session inserted the same edge between our read and write.
                logger.info(
                    "Concurrent toggle on %s for %s; caller must re-read",
                    self._relation.table,
                    match,
                )
            raise
        logger.debug(
            "Toggled %s %s -> %s", self._relation.table, match, "on" if active else "off"
        )
        return ToggleState(active)

    @provider_operation
    async def toggle(self, owner_key: object, target_key: object) -> Result[ToggleState]:
        return Result.success(await self.flip(owner_key, target_key))

    async def contains(self, owner_key: object, target_key: object) -> bool:
        if self._store is None:
            raise ProviderError("not_configured")
        match = self._keys(owner_key, target_key)
        rows = await self._store.select(
            self._relation.table,
            (self._relation.target_column,),
            filters=tuple(eq(column, value) for column, value in match.items()),
            limit=1,
        )
        return bool(rows)

    async def targets_of(self, owner_key: object, candidates: Iterable[object]) -> set[str]:
        """Return which ``candidates`` the owner is linked to, in one query."""

        if self._store is None:
            raise ProviderError("not_configured")
        owner = clean_id(owner_key)
        targets = unique_ids(candidates)
        if not owner or not targets:
            return set()
        rows = await self._store.select(
            self._relation.table,
            (self._relation.target_column,),
            filters=(
                eq(self._relation.owner_column, owner),
                in_(self._relation.target_column, targets),
            ),
        )
        return {clean_id(row.get(self._relation.target_column)) for row in rows} - {""}

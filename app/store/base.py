"""Backend-neutral contract for the remote relational store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Sequence

Row = dict[str, Any]
FilterOp = Literal["eq", "in", "gte"]


@dataclass(frozen=True, slots=True)
class Filter:
    column: str
    op: FilterOp
    value: Any


@dataclass(frozen=True, slots=True)
class Order:
    column: str
    ascending: bool = True


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def match_filters(match: Mapping[str, Any]) -> tuple[Filter, ...]:
    return tuple(eq(column, value) for column, value in match.items())


class StoreClient(ABC):
    """Row-level access to the tables the providers read and write.

    Every method raises :class:`app.errors.StoreError` on failure and returns
    plain dictionaries keyed by column name, timestamps as ISO-8601 strings.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        columns: Sequence[str],
        *,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: int | None = None,
    ) -> list[Row]:
        """Return rows matching every filter."""

    @abstractmethod
    async def insert(self, table: str, row: Mapping[str, Any]) -> list[Row]:
        """Insert one row and return the stored representation."""

    @abstractmethod
    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        on_conflict: Sequence[str],
    ) -> list[Row]:
        """Insert or merge one row keyed by ``on_conflict`` columns."""

    @abstractmethod
    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Sequence[Filter],
    ) -> list[Row]:
        """Update matching rows and return them."""

    @abstractmethod
    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        """Delete matching rows and return how many were removed."""

    async def toggle_membership(self, table: str, match: Mapping[str, Any]) -> bool:
        """Flip presence of the edge described by ``match``.

        Returns ``True`` when the edge exists afterwards. This default issues a
        read followed by a delete or an insert, so two concurrent callers can
        interleave; the unique constraint on the edge turns a duplicate insert
        into a ``23505`` failure instead of a second row.
        """

        filters = match_filters(match)
        existing = await self.select(table, tuple(match), filters=filters, limit=1)
        if existing:
            await self.delete(table, filters=filters)
            return False
        await self.insert(table, dict(match))
        return True

    async def aclose(self) -> None:
        """Release backend resources."""

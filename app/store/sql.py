"""Store backend running the provider queries through SQLAlchemy."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping, Sequence

from sqlalchemy import Column, DateTime, Integer, Table, delete, insert, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import Base
from ..errors import FOREIGN_KEY_VIOLATION, UNIQUE_VIOLATION, StoreError
from ..utils import parse_timestamp
from .base import Filter, Order, Row, StoreClient, match_filters


class SqlStoreClient(StoreClient):
    """Run store operations against the ORM tables in :mod:`app.db_models`."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        # Registers the mapped tables on Base.metadata.
        from .. import db_models  # noqa: F401

        self._session_factory = session_factory

    async def select(
        self,
        table: str,
        columns: Sequence[str],
        *,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: int | None = None,
    ) -> list[Row]:
        target = self._table(table)
        selected = [self._column(target, name) for name in columns]
        statement = select(*selected).where(*self._clauses(target, filters))
        for entry in order:
            column = self._column(target, entry.column)
            statement = statement.order_by(column.asc() if entry.ascending else column.desc())
        if limit is not None:
            statement = statement.limit(limit)
        async with self._transaction() as session:
            result = await session.execute(statement)
            return [self._serialize(row._mapping) for row in result]

    async def insert(self, table: str, row: Mapping[str, Any]) -> list[Row]:
        target = self._table(table)
        values = self._coerce_row(target, row)
        async with self._transaction() as session:
            result = await session.execute(insert(target).values(**values))
            key = result.inserted_primary_key
            return await self._reload_by_key(session, target, key, values)

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        on_conflict: Sequence[str],
    ) -> list[Row]:
        target = self._table(table)
        values = self._coerce_row(target, row)
        conflict_filters = [
            self._column(target, name) == values.get(name) for name in on_conflict
        ]
        updates = {key: value for key, value in values.items() if key not in on_conflict}
        async with self._transaction() as session:
            existing = await session.execute(
                select(*target.primary_key.columns).where(*conflict_filters).limit(1)
            )
            if existing.first() is None:
                await session.execute(insert(target).values(**values))
            elif updates:
                await session.execute(
                    update(target).where(*conflict_filters).values(**updates)
                )
            result = await session.execute(select(target).where(*conflict_filters))
            return [self._serialize(item._mapping) for item in result]

    async def update(
        self,
        table: str,
        values: Mapping[str, Any],
        *,
        filters: Sequence[Filter],
    ) -> list[Row]:
        target = self._table(table)
        clauses = self._clauses(target, filters)
        coerced = self._coerce_row(target, values)
        async with self._transaction() as session:
            await session.execute(update(target).where(*clauses).values(**coerced))
            result = await session.execute(select(target).where(*clauses))
            return [self._serialize(item._mapping) for item in result]

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> int:
        target = self._table(table)
        async with self._transaction() as session:
            result = await session.execute(
                delete(target).where(*self._clauses(target, filters))
            )
            return int(result.rowcount or 0)

    async def toggle_membership(self, table: str, match: Mapping[str, Any]) -> bool:
        """Flip the edge inside a single transaction."""

        target = self._table(table)
        values = self._coerce_row(target, match)
        clauses = self._clauses(target, match_filters(values))
        async with self._transaction() as session:
            existing = await session.execute(
                select(*target.primary_key.columns).where(*clauses).limit(1)
            )
            if existing.first() is not None:
                await session.execute(delete(target).where(*clauses))
                return False
            await session.execute(insert(target).values(**values))
            return True

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except IntegrityError as exc:
            message = str(exc.orig) if exc.orig is not None else str(exc)
            lowered = message.lower()
            if "unique" in lowered or "duplicate" in lowered:
                code = UNIQUE_VIOLATION
            elif "foreign key" in lowered:
                code = FOREIGN_KEY_VIOLATION
            else:
                code = None
            raise StoreError(message, status=409 if code == UNIQUE_VIOLATION else 400, code=code) from exc
        except DBAPIError as exc:
            sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
            raise StoreError(str(exc.orig or exc), code=sqlstate) from exc
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    async def _reload_by_key(
        self,
        session: AsyncSession,
        target: Table,
        key: Sequence[Any] | None,
        values: Mapping[str, Any],
    ) -> list[Row]:
        pk_columns = list(target.primary_key.columns)
        if key is not None and len(key) == len(pk_columns) and all(
            part is not None for part in key
        ):
            clauses = [column == part for column, part in zip(pk_columns, key)]
        else:
            clauses = [target.c[name] == value for name, value in values.items()]
        result = await session.execute(select(target).where(*clauses).limit(1))
        return [self._serialize(item._mapping) for item in result]

    @staticmethod
    def _table(name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise StoreError(f"relation \"{name}\" does not exist", code="42P01")
        return table

    @staticmethod
    def _column(table: Table, name: str) -> Column[Any]:
        try:
            return table.c[name]
        except KeyError as exc:
            raise StoreError(
                f"column {table.name}.{name} does not exist", code="42703"
            ) from exc

    def _clauses(self, table: Table, filters: Sequence[Filter]) -> list[Any]:
        clauses: list[Any] = []
        for entry in filters:
            column = self._column(table, entry.column)
            if entry.op == "eq":
                value = self._coerce_value(column, entry.value)
                clauses.append(column.is_(None) if value is None else column == value)
            elif entry.op == "in":
                values = [self._coerce_value(column, item) for item in entry.value]
                clauses.append(column.in_(values))
            elif entry.op == "gte":
                clauses.append(column >= self._coerce_value(column, entry.value))
            else:
                raise StoreError(f"unsupported filter operator {entry.op!r}")
        return clauses

    def _coerce_row(self, table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            name: self._coerce_value(self._column(table, name), value)
            for name, value in row.items()
        }

    @staticmethod
    def _coerce_value(column: Column[Any], value: Any) -> Any:
        if value is None:
            return None
        if isinstance(column.type, Integer) and isinstance(value, str):
            # Non-numeric text is kept as is and simply matches nothing.
            stripped = value.strip()
            if not stripped.isascii() or "_" in stripped:
                return value
            try:
                return int(stripped)
            except ValueError:
                return value
        if isinstance(column.type, DateTime):
            parsed = parse_timestamp(value)
            if parsed is None:
                raise StoreError(
                    f"invalid input syntax for type timestamp: {value!r}", code="22007"
                )
            return parsed.astimezone(timezone.utc)
        return value

    @staticmethod
    def _serialize(mapping: Mapping[str, Any]) -> Row:
        row: Row = {}
        for key, value in mapping.items():
            if isinstance(value, datetime):
                if value.tzinfo is None:
                    value = value.replace(tzinfo=timezone.utc)
                value = value.isoformat()
            row[str(key)] = value
        return row

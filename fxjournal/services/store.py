"""Trade store adapter, the persistence seam every service depends on.

Services never touch SQLAlchemy sessions directly. They talk to a
``TradeStore`` (insert / update / delete / select with filters over named
tables) so tests can swap in an in-memory double and the rest of the code
does not care which database sits behind it.

Errors carry a machine-readable ``code``. ``RecordNotFoundError`` (code
``not_found``) is the expected outcome of a get-or-create or
seed-a-new-rollup lookup; every other code is a genuine failure.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Iterable, Literal, Protocol, Sequence

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import fxjournal.models  # noqa: F401  registers every table on Base.metadata
from fxjournal.database import Base, async_session

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
CONSTRAINT_VIOLATION = "constraint_violation"
INVALID_QUERY = "invalid_query"
DB_ERROR = "db_error"

FilterOp = Literal["eq", "gte", "lte", "in"]
Record = dict[str, Any]


class StoreError(Exception):
    """Any failure reported by the store. Inspect ``code`` to tell them apart."""

    def __init__(self, message: str, code: str = DB_ERROR) -> None:
        super().__init__(message)
        self.code = code


class RecordNotFoundError(StoreError):
    def __init__(self, table: str, filters: Sequence["Filter"]) -> None:
        where = ", ".join(f"{f.column} {f.op} {f.value!r}" for f in filters)
        super().__init__(f"No row in {table} where {where}", code=NOT_FOUND)
        self.table = table


@dataclass(frozen=True)
class Filter:
    """Single predicate on a column. Multiple filters are AND-ed."""

    column: str
    op: FilterOp
    value: Any


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


class TradeStore(Protocol):
    """Contract the journal services depend on."""

    async def insert(self, table: str, record: Record) -> Record: ...

    async def update(self, table: str, filters: Sequence[Filter], patch: Record) -> None: ...

    async def delete(self, table: str, filters: Sequence[Filter]) -> None: ...

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Record]: ...

    async def select_one(self, table: str, filters: Sequence[Filter]) -> Record: ...


class SqlStore:
    """``TradeStore`` backed by the SQLAlchemy async session factory.

    Each call runs in its own short session and commits immediately, so
    independent calls may be awaited concurrently (one pooled connection each).
    ``order_by`` entries are column names, prefixed with ``-`` for descending.
    """

    def __init__(self, session_factory=async_session) -> None:
        self._session_factory = session_factory

    async def insert(self, table: str, record: Record) -> Record:
        t = self._table(table)
        stmt = insert(t).values(**record).returning(*t.c)
        async with self._session(f"insert into {table}") as session:
            result = await session.execute(stmt)
            row = dict(result.mappings().one())
            await session.commit()
        return row

    async def update(self, table: str, filters: Sequence[Filter], patch: Record) -> None:
        t = self._table(table)
        if not filters:
            raise StoreError(f"Refusing unfiltered update on {table}", code=INVALID_QUERY)
        stmt = update(t).where(*self._where(t, filters)).values(**patch)
        async with self._session(f"update {table}") as session:
            await session.execute(stmt)
            await session.commit()

    async def delete(self, table: str, filters: Sequence[Filter]) -> None:
        t = self._table(table)
        if not filters:
            raise StoreError(f"Refusing unfiltered delete on {table}", code=INVALID_QUERY)
        stmt = delete(t).where(*self._where(t, filters))
        async with self._session(f"delete from {table}") as session:
            await session.execute(stmt)
            await session.commit()

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Record]:
        t = self._table(table)
        stmt = select(t).where(*self._where(t, filters))
        for name in order_by:
            if name.startswith("-"):
                stmt = stmt.order_by(self._column(t, name[1:]).desc())
            else:
                stmt = stmt.order_by(self._column(t, name))
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session(f"select from {table}") as session:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    async def select_one(self, table: str, filters: Sequence[Filter]) -> Record:
        rows = await self.select(table, filters, limit=1)
        if not rows:
            raise RecordNotFoundError(table, filters)
        return rows[0]

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
            except IntegrityError as e:
                await session.rollback()
                logger.warning("Store %s violated a constraint: %s", action, e.orig)
                raise StoreError(f"{action}: {e.orig}", code=CONSTRAINT_VIOLATION) from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("Store %s failed: %s", action, e)
                raise StoreError(f"{action}: {e}", code=DB_ERROR) from e

    @staticmethod
    def _table(name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise StoreError(f"Unknown table: {name}", code=INVALID_QUERY)
        return table

    @staticmethod
    def _column(table: Table, name: str):
        if name not in table.c:
            raise StoreError(f"Unknown column {table.name}.{name}", code=INVALID_QUERY)
        return table.c[name]

    @classmethod
    def _where(cls, table: Table, filters: Sequence[Filter]) -> list:
        clauses = []
        for f in filters:
            column = cls._column(table, f.column)
            if f.op == "eq":
                clauses.append(column == f.value)
            elif f.op == "gte":
                clauses.append(column >= f.value)
            elif f.op == "lte":
                clauses.append(column <= f.value)
            elif f.op == "in":
                clauses.append(column.in_(list(f.value)))
            else:
                raise StoreError(f"Unsupported filter op: {f.op}", code=INVALID_QUERY)
        return clauses

"""
SQLAlchemy-backed data store.

Blocking SQLAlchemy calls run in the default executor so the async
controllers never block the event loop while a write is in flight.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import Table, and_, create_engine, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..config import get_config_value
from ..exceptions import StoreError
from .base import DataStore, Filter, Query, Row, PROFILE_SUMMARY_FIELDS
from .schema import metadata, profiles, TIMESTAMPED_ON_UPDATE

logger = logging.getLogger(__name__)

_PROFILE_PREFIX = "profile__"


def create_store_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    kwargs: Dict[str, Any] = {'echo': echo}
    if url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            kwargs['poolclass'] = StaticPool
    return create_engine(url, **kwargs)


class SQLStore(DataStore):
    """DataStore over a SQLAlchemy engine."""

    def __init__(self, url: str = 'sqlite://', echo: bool = False,
                 engine: Optional[Engine] = None, create_tables: bool = True):
        self.engine = engine if engine is not None else create_store_engine(url, echo)
        if create_tables:
            try:
                metadata.create_all(self.engine)
            except SQLAlchemyError as e:
                raise StoreError(f"Could not create tables: {e}") from e
        logger.info(f"SQL store ready on {self.engine.url.render_as_string(hide_password=True)}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'SQLStore':
        return cls(url=get_config_value(config, 'store.url', 'sqlite://'),
                   echo=get_config_value(config, 'store.echo', False))

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _table(self, name: str) -> Table:
        try:
            return metadata.tables[name]
        except KeyError:
            raise StoreError(f"Unknown table: {name}", table=name) from None

    def _column(self, table: Table, name: str):
        try:
            return table.c[name]
        except KeyError:
            raise StoreError(f"Unknown column {table.name}.{name}", table=table.name) from None

    def _clause(self, table: Table, flt: Filter):
        column = self._column(table, flt.field)
        if flt.op == "eq":
            return column.is_(None) if flt.value is None else column == flt.value
        if flt.op == "in":
            return column.in_(list(flt.value))
        return column.ilike(flt.value)

    def _where(self, stmt, table: Table, filters: Sequence[Filter],
               any_of: Sequence[Filter] = ()):
        clauses = [self._clause(table, flt) for flt in filters]
        if any_of:
            clauses.append(or_(*[self._clause(table, flt) for flt in any_of]))
        if clauses:
            stmt = stmt.where(and_(*clauses))
        return stmt

    async def _run(self, table: str, fn: Callable, *args) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, *args))
        except IntegrityError as e:
            logger.warning(f"Constraint violation on {table}: {e.orig}")
            raise StoreError(f"Constraint violation on {table}", table=table) from e
        except SQLAlchemyError as e:
            logger.error(f"Store call on {table} failed: {e}")
            raise StoreError(str(e), table=table) from e

    # ------------------------------------------------------------------
    # blocking implementations
    # ------------------------------------------------------------------
    def _create_sync(self, name: str, values: Row) -> Row:
        table = self._table(name)
        now = datetime.now(timezone.utc)
        row: Row = {'id': str(uuid.uuid4()), 'created_at': now}
        if name in TIMESTAMPED_ON_UPDATE:
            row['updated_at'] = now
        row.update(values)
        with self.engine.begin() as conn:
            conn.execute(table.insert().values(**row))
        return row

    def _delete_sync(self, name: str, filters: Sequence[Filter]) -> int:
        table = self._table(name)
        stmt = self._where(table.delete(), table, filters)
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount

    def _count_sync(self, name: str, filters: Sequence[Filter]) -> int:
        table = self._table(name)
        stmt = self._where(select(func.count()).select_from(table), table, filters)
        with self.engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def _update_sync(self, name: str, filters: Sequence[Filter], values: Row) -> int:
        table = self._table(name)
        stmt = self._where(table.update(), table, filters).values(**values)
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount

    def _query_sync(self, query: Query) -> List[Row]:
        table = self._table(query.table)
        if query.with_profile:
            stmt = select(
                table,
                *[profiles.c[key].label(_PROFILE_PREFIX + key) for key in PROFILE_SUMMARY_FIELDS]
            ).select_from(table.outerjoin(profiles, table.c.user_id == profiles.c.id))
        else:
            stmt = select(table)

        stmt = self._where(stmt, table, query.filters, query.any_of)
        if query.order_by:
            column = self._column(table, query.order_by)
            stmt = stmt.order_by(column.asc() if query.ascending else column.desc())
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        with self.engine.connect() as conn:
            rows = [dict(r._mapping) for r in conn.execute(stmt)]

        if query.with_profile:
            for row in rows:
                summary = {key: row.pop(_PROFILE_PREFIX + key) for key in PROFILE_SUMMARY_FIELDS}
                row['profile'] = summary if summary['username'] is not None else None
        return rows

    # ------------------------------------------------------------------
    # DataStore
    # ------------------------------------------------------------------
    async def create(self, table: str, values: Row) -> Row:
        return await self._run(table, self._create_sync, table, values)

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        return await self._run(table, self._delete_sync, table, filters)

    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        return await self._run(table, self._count_sync, table, filters)

    async def update(self, table: str, filters: Sequence[Filter], values: Row) -> int:
        return await self._run(table, self._update_sync, table, filters, values)

    async def query(self, query: Query) -> List[Row]:
        return await self._run(query.table, self._query_sync, query)

    async def close(self) -> None:
        self.engine.dispose()

"""
In-process data store.

Implements the DataStore interface over plain dicts with the same table
layout and uniqueness rules as the SQL schema. Used by the CLI demo and
the test suite.
"""

import copy
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Sequence, Tuple

from ..exceptions import StoreError
from .base import DataStore, Filter, Query, Row, PROFILE_SUMMARY_FIELDS

logger = logging.getLogger(__name__)

TABLES = ('profiles', 'posts', 'likes', 'comments', 'follows')

UNIQUE_KEYS: Dict[str, Tuple[Tuple[str, ...], ...]] = {
    'profiles': (('username',),),
    'likes': (('user_id', 'post_id'),),
    'follows': (('follower_id', 'following_id'),),
}


def like_to_regex(pattern: str) -> 're.Pattern':
    """Translate a SQL LIKE pattern into a case-insensitive regex."""
    parts = []
    for char in pattern:
        if char == '%':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return re.compile('^' + ''.join(parts) + '$', re.IGNORECASE | re.DOTALL)


def _matches(row: Row, flt: Filter) -> bool:
    value = row.get(flt.field)
    if flt.op == "eq":
        return value == flt.value
    if flt.op == "in":
        return value in flt.value
    if value is None:
        return False
    return like_to_regex(flt.value).match(str(value)) is not None


class MemoryStore(DataStore):
    """Dict-backed DataStore."""

    def __init__(self):
        self._tables: Dict[str, List[Row]] = {name: [] for name in TABLES}

    def _table(self, table: str) -> List[Row]:
        try:
            return self._tables[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}", table=table) from None

    def _select(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        return [row for row in self._table(table)
                if all(_matches(row, flt) for flt in filters)]

    def _check_unique(self, table: str, row: Row) -> None:
        for key in UNIQUE_KEYS.get(table, ()):
            for existing in self._tables[table]:
                if all(existing.get(col) == row.get(col) for col in key):
                    raise StoreError(
                        f"Duplicate key {key} in {table}", table=table
                    )

    async def create(self, table: str, values: Row) -> Row:
        rows = self._table(table)
        now = datetime.now(timezone.utc)
        row = {'id': str(uuid.uuid4()), 'created_at': now}
        if table in ('posts', 'comments'):
            row['updated_at'] = now
        row.update(values)
        self._check_unique(table, row)
        rows.append(row)
        logger.debug(f"Inserted row {row['id']} into {table}")
        return copy.deepcopy(row)

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        doomed = self._select(table, filters)
        self._tables[table] = [row for row in self._tables[table]
                               if not any(row is d for d in doomed)]
        return len(doomed)

    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        return len(self._select(table, filters))

    async def update(self, table: str, filters: Sequence[Filter], values: Row) -> int:
        rows = self._select(table, filters)
        for row in rows:
            row.update(values)
        return len(rows)

    async def query(self, query: Query) -> List[Row]:
        rows = self._select(query.table, query.filters)
        if query.any_of:
            rows = [row for row in rows
                    if any(_matches(row, flt) for flt in query.any_of)]

        if query.order_by:
            # sort is stable, so equal timestamps keep insertion order
            rows = sorted(rows, key=lambda r: r.get(query.order_by),
                          reverse=not query.ascending)

        if query.limit is not None:
            rows = rows[:query.limit]

        result = [copy.deepcopy(row) for row in rows]
        if query.with_profile:
            profiles = {p['id']: p for p in self._tables['profiles']}
            for row in result:
                profile = profiles.get(row.get('user_id'))
                row['profile'] = (
                    {key: profile.get(key) for key in PROFILE_SUMMARY_FIELDS}
                    if profile else None
                )
        return result

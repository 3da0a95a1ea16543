"""
Data access abstraction over the hosted relational store.

Controllers and view-models talk to the store only through this
interface, so the same code runs against the SQL adapter, the in-memory
store, or a mock in tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import RecordNotFound

Row = Dict[str, Any]

# Columns of the joined author profile attached as ``row['profile']``
PROFILE_SUMMARY_FIELDS = ('username', 'avatar_url')


@dataclass(frozen=True)
class Filter:
    """A single column predicate: eq, in or ilike (SQL LIKE pattern, case-insensitive)."""
    field: str
    op: str = "eq"
    value: Any = None

    def __post_init__(self):
        if self.op not in ("eq", "in", "ilike"):
            raise ValueError(f"Unsupported filter operator: {self.op}")


def eq(field_name: str, value: Any) -> Filter:
    return Filter(field_name, "eq", value)


def in_(field_name: str, values: Sequence[Any]) -> Filter:
    return Filter(field_name, "in", tuple(values))


def ilike(field_name: str, pattern: str) -> Filter:
    return Filter(field_name, "ilike", pattern)


@dataclass
class Query:
    """
    Read request against one table.

    ``filters`` are AND-ed; ``any_of`` is a single OR group AND-ed with
    them. With ``with_profile`` each row gets a ``profile`` dict holding
    the author's username and avatar, joined on ``user_id``.
    """
    table: str
    filters: List[Filter] = field(default_factory=list)
    any_of: List[Filter] = field(default_factory=list)
    order_by: Optional[str] = None
    ascending: bool = True
    limit: Optional[int] = None
    with_profile: bool = False


class DataStore(ABC):
    """Async data-access interface: create, delete, count, query, update."""

    @abstractmethod
    async def create(self, table: str, values: Row) -> Row:
        """Insert a row; returns it with ``id`` and ``created_at`` filled in."""
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        """Delete matching rows; returns the number removed."""
        pass

    @abstractmethod
    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        """Count rows matching every filter."""
        pass

    @abstractmethod
    async def query(self, query: Query) -> List[Row]:
        """Return matching rows."""
        pass

    @abstractmethod
    async def update(self, table: str, filters: Sequence[Filter], values: Row) -> int:
        """Update matching rows; returns the number changed."""
        pass

    async def get(self, table: str, filters: Sequence[Filter]) -> Row:
        """Return exactly one matching row or raise RecordNotFound."""
        rows = await self.query(Query(table=table, filters=list(filters), limit=1))
        if not rows:
            raise RecordNotFound(f"No row in {table} matches", table=table)
        return rows[0]

    async def find(self, table: str, filters: Sequence[Filter]) -> Optional[Row]:
        """Return the first matching row or None."""
        rows = await self.query(Query(table=table, filters=list(filters), limit=1))
        return rows[0] if rows else None

    async def exists(self, table: str, filters: Sequence[Filter]) -> bool:
        return await self.count(table, filters) > 0

    async def close(self) -> None:
        pass

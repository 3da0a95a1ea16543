"""
User and post search with debounced queries.
"""

from typing import Any, Dict, List, Optional
import logging

from ..config import get_config_value
from ..mutations.toggle import REMOTE_ERRORS
from ..store.base import DataStore, Query, Row, ilike
from .debounce import Debouncer

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("users", "posts")
SEARCH_DEBOUNCE_MS = 300
SEARCH_LIMIT = 20


class SearchModel:
    """
    View-model for the search page.

    Every change of ``query`` or ``search_type`` schedules one debounced
    search. A blank query lists the first ``limit`` rows.
    """

    def __init__(self, store: DataStore, debounce_ms: int = SEARCH_DEBOUNCE_MS,
                 limit: int = SEARCH_LIMIT):
        self.store = store
        self.limit = limit
        self.query = ""
        self.search_type = "users"
        self.profiles: List[Row] = []
        self.posts: List[Row] = []
        self.loading = False
        self._debouncer = Debouncer(self.search, debounce_ms)

    @classmethod
    def from_config(cls, store: DataStore, config: Dict[str, Any]) -> 'SearchModel':
        return cls(store,
                   debounce_ms=get_config_value(config, 'search.debounce_ms', SEARCH_DEBOUNCE_MS),
                   limit=get_config_value(config, 'search.limit', SEARCH_LIMIT))

    @property
    def results(self) -> List[Row]:
        return self.profiles if self.search_type == "users" else self.posts

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def set_query(self, query: str) -> None:
        self.query = query
        self._schedule()

    def set_search_type(self, search_type: str) -> None:
        if search_type not in SEARCH_TYPES:
            raise ValueError(f"Unknown search type: {search_type}")
        self.search_type = search_type
        self._schedule()

    def _schedule(self) -> None:
        self._debouncer.call(self.query, self.search_type)

    def _build_query(self, text: str, search_type: str) -> Query:
        term = text.strip()
        if search_type == "users":
            query = Query(table='profiles', limit=self.limit)
            if term:
                query.any_of = [ilike('username', f"%{term}%"),
                                ilike('full_name', f"%{term}%")]
            return query

        query = Query(table='posts', limit=self.limit, with_profile=True)
        if term:
            query.filters = [ilike('caption', f"%{term}%")]
        return query

    async def search(self, text: str, search_type: str) -> List[Row]:
        """Run one search immediately; errors are logged and keep prior results."""
        self.loading = True
        try:
            rows = await self.store.query(self._build_query(text, search_type))
        except REMOTE_ERRORS as e:
            logger.error(f"Search for {search_type} '{text}' failed: {e}")
            return self.profiles if search_type == "users" else self.posts
        finally:
            self.loading = False

        if search_type == "users":
            self.profiles = rows
        else:
            self.posts = rows
        logger.debug(f"Search for {search_type} '{text}' returned {len(rows)} rows")
        return rows

    async def flush(self) -> Optional[List[Row]]:
        return await self._debouncer.flush()

    async def join(self) -> None:
        await self._debouncer.join()

    def close(self) -> None:
        self._debouncer.cancel()

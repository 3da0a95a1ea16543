"""
@mention detection, suggestion and insertion for caption inputs.
"""

import re
from typing import Any, Dict, List, Optional, Tuple
import logging

from ..config import get_config_value
from ..mutations.toggle import REMOTE_ERRORS
from ..store.base import DataStore, Query, Row, ilike

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r'@([a-zA-Z0-9_]*)$')
MENTION_LIMIT = 5


def find_mention_query(text: str, cursor: Optional[int] = None) -> Optional[str]:
    """
    Return the partial username being typed before the cursor.

    Returns None when the cursor is not inside an @mention; a bare ``@``
    gives the empty string.
    """
    if cursor is None:
        cursor = len(text)
    match = MENTION_PATTERN.search(text[:cursor])
    return match.group(1) if match else None


def insert_mention(text: str, cursor: Optional[int], username: str) -> Tuple[str, int]:
    """
    Replace the partial mention before the cursor with ``@username ``.

    Returns:
        (new text, new cursor position just after the inserted space).
        Text and cursor are returned unchanged when there is no mention.
    """
    if cursor is None:
        cursor = len(text)
    before, after = text[:cursor], text[cursor:]
    if not MENTION_PATTERN.search(before):
        return text, cursor
    head = before[:before.rfind('@')]
    return f"{head}@{username} {after}", len(head) + len(username) + 2


class MentionSuggester:
    """Keeps the suggestion list for the mention under the cursor."""

    def __init__(self, store: DataStore, limit: int = MENTION_LIMIT):
        self.store = store
        self.limit = limit
        self.query: Optional[str] = None
        self.suggestions: List[Row] = []

    @classmethod
    def from_config(cls, store: DataStore, config: Dict[str, Any]) -> 'MentionSuggester':
        return cls(store, limit=get_config_value(config, 'mentions.limit', MENTION_LIMIT))

    @property
    def visible(self) -> bool:
        return self.query is not None and bool(self.suggestions)

    async def update(self, text: str, cursor: Optional[int] = None) -> List[Row]:
        """Recompute suggestions after the text or cursor changed."""
        query = find_mention_query(text, cursor)
        self.query = query
        if not query:
            self.suggestions = []
            return self.suggestions

        try:
            self.suggestions = await self.store.query(Query(
                table='profiles',
                filters=[ilike('username', f"{query}%")],
                limit=self.limit,
            ))
        except REMOTE_ERRORS as e:
            logger.warning(f"Mention lookup for '{query}' failed: {e}")
            self.suggestions = []
        return self.suggestions

    def accept(self, text: str, cursor: Optional[int] = None,
               index: int = 0) -> Tuple[str, int]:
        """Insert the chosen suggestion and close the list."""
        if not self.suggestions:
            return text, len(text) if cursor is None else cursor
        username = self.suggestions[index]['username']
        result = insert_mention(text, cursor, username)
        self.dismiss()
        return result

    def dismiss(self) -> None:
        self.query = None
        self.suggestions = []

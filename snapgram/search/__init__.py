"""
Search, debounce and @mention helpers for Snapgram
"""

from .debounce import Debouncer
from .model import SearchModel, SEARCH_TYPES
from .mentions import MentionSuggester, find_mention_query, insert_mention

__all__ = [
    "Debouncer",
    "SearchModel",
    "SEARCH_TYPES",
    "MentionSuggester",
    "find_mention_query",
    "insert_mention",
]

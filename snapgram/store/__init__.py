"""
Data store adapters for Snapgram.

The hosted relational store is reached only through ``DataStore``.
"""

from .base import DataStore, Filter, Query, Row, eq, in_, ilike
from .memory import MemoryStore
from .sql import SQLStore, create_store_engine

__all__ = [
    'DataStore',
    'Filter',
    'Query',
    'Row',
    'eq',
    'in_',
    'ilike',
    'MemoryStore',
    'SQLStore',
    'create_store_engine',
]

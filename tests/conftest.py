"""
Shared fixtures for the Snapgram test suite.
"""

import asyncio
import io
from types import SimpleNamespace
from typing import List, Optional, Sequence, Set, Tuple

import numpy as np
import pytest
import pytest_asyncio
from PIL import Image

from snapgram.exceptions import StoreError
from snapgram.mutations.channel import EventChannel
from snapgram.session import Session
from snapgram.store.base import DataStore, Filter, Query, Row
from snapgram.store.memory import MemoryStore


class FlakyStore(DataStore):
    """
    Wraps a store and records every call.

    Operations listed in ``fail_ops`` raise StoreError. After ``hold()``,
    writes wait until the returned event is set, which keeps them in flight.
    """

    def __init__(self, inner: DataStore):
        self.inner = inner
        self.fail_ops: Set[str] = set()
        self.calls: List[Tuple[str, str]] = []
        self.gate: Optional[asyncio.Event] = None

    def hold(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    def writes(self, table: Optional[str] = None) -> List[Tuple[str, str]]:
        return [c for c in self.calls
                if c[0] in ('create', 'delete', 'update') and (table is None or c[1] == table)]

    async def _enter(self, op: str, table: str, gated: bool) -> None:
        self.calls.append((op, table))
        if gated and self.gate is not None:
            await self.gate.wait()
        if op in self.fail_ops:
            raise StoreError(f"{op} on {table} rejected", table=table)

    async def create(self, table: str, values: Row) -> Row:
        await self._enter('create', table, gated=True)
        return await self.inner.create(table, values)

    async def delete(self, table: str, filters: Sequence[Filter]) -> int:
        await self._enter('delete', table, gated=True)
        return await self.inner.delete(table, filters)

    async def update(self, table: str, filters: Sequence[Filter], values: Row) -> int:
        await self._enter('update', table, gated=True)
        return await self.inner.update(table, filters, values)

    async def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        await self._enter('count', table, gated=False)
        return await self.inner.count(table, filters)

    async def query(self, query: Query) -> List[Row]:
        await self._enter('query', query.table, gated=False)
        return await self.inner.query(query)


@pytest.fixture
def sample_image():
    """Small RGB gradient with some colour in it."""
    height, width = 32, 48
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[..., 0] = x[None, :].astype(np.uint8)
    image[..., 1] = y[:, None].astype(np.uint8)
    image[..., 2] = 128
    return image


@pytest.fixture
def sample_png(sample_image):
    buffer = io.BytesIO()
    Image.fromarray(sample_image).save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def sample_png_file(tmp_path, sample_png):
    path = tmp_path / "photo.png"
    path.write_bytes(sample_png)
    return path


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def flaky(store):
    return FlakyStore(store)


@pytest.fixture
def channel():
    return EventChannel("test")


@pytest_asyncio.fixture
async def world(store):
    """Three profiles and one post by bob; alice follows bob."""
    alice = await store.create('profiles', {'id': 'alice-id', 'username': 'alice',
                                            'full_name': 'Alice Liddell', 'avatar_url': None})
    bob = await store.create('profiles', {'id': 'bob-id', 'username': 'bob',
                                          'full_name': 'Bob Builder',
                                          'avatar_url': 'http://img/bob.png'})
    carol = await store.create('profiles', {'id': 'carol-id', 'username': 'carol',
                                            'full_name': None, 'avatar_url': None})
    post = await store.create('posts', {'user_id': 'bob-id', 'caption': 'Sunset at the pier',
                                        'image_url': 'http://img/sunset.jpg'})
    await store.create('follows', {'follower_id': 'alice-id', 'following_id': 'bob-id'})
    return SimpleNamespace(store=store, alice=alice, bob=bob, carol=carol, post=post,
                           session=Session('alice-id'))

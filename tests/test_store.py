"""
Tests for the data store adapters.

Every behaviour is checked against both the in-memory store and the
SQLAlchemy store on in-memory SQLite.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from snapgram.exceptions import RecordNotFound, StoreError
from snapgram.store import MemoryStore, Query, SQLStore, eq, ilike, in_
from snapgram.store.memory import like_to_regex


@pytest_asyncio.fixture(params=['memory', 'sql'])
async def any_store(request):
    if request.param == 'memory':
        store = MemoryStore()
    else:
        store = SQLStore(url='sqlite://')
    await store.create('profiles', {'id': 'u1', 'username': 'alice', 'full_name': 'Alice A'})
    await store.create('profiles', {'id': 'u2', 'username': 'bob', 'full_name': 'Bob B',
                                    'avatar_url': 'http://img/bob.png'})
    yield store
    await store.close()


class TestDataStore:
    """Shared DataStore contract."""

    @pytest.mark.asyncio
    async def test_create_fills_id_and_timestamps(self, any_store):
        post = await any_store.create('posts', {'user_id': 'u1', 'caption': 'hi',
                                                'image_url': 'http://img/1.jpg'})
        assert post['id']
        assert post['created_at'] is not None
        assert post['updated_at'] is not None
        assert await any_store.count('posts') == 1

    @pytest.mark.asyncio
    async def test_unique_relation(self, any_store):
        await any_store.create('follows', {'follower_id': 'u1', 'following_id': 'u2'})
        with pytest.raises(StoreError):
            await any_store.create('follows', {'follower_id': 'u1', 'following_id': 'u2'})
        await any_store.create('likes', {'user_id': 'u1', 'post_id': 'p1'})
        with pytest.raises(StoreError):
            await any_store.create('likes', {'user_id': 'u1', 'post_id': 'p1'})
        assert await any_store.count('likes') == 1

    @pytest.mark.asyncio
    async def test_delete_and_count(self, any_store):
        await any_store.create('follows', {'follower_id': 'u1', 'following_id': 'u2'})
        await any_store.create('follows', {'follower_id': 'u2', 'following_id': 'u1'})
        assert await any_store.count('follows', [eq('follower_id', 'u1')]) == 1
        removed = await any_store.delete('follows', [eq('follower_id', 'u1'),
                                                     eq('following_id', 'u2')])
        assert removed == 1
        assert await any_store.count('follows') == 1
        assert not await any_store.exists('follows', [eq('follower_id', 'u1')])

    @pytest.mark.asyncio
    async def test_query_order_limit_and_in(self, any_store):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(3):
            await any_store.create('posts', {'user_id': 'u1' if i < 2 else 'u2',
                                             'caption': f"post {i}", 'image_url': 'x',
                                             'created_at': base + timedelta(hours=i)})
        rows = await any_store.query(Query(table='posts', filters=[in_('user_id', ['u1', 'u2'])],
                                           order_by='created_at', ascending=False, limit=2))
        assert [r['caption'] for r in rows] == ['post 2', 'post 1']

    @pytest.mark.asyncio
    async def test_ilike_and_any_of(self, any_store):
        rows = await any_store.query(Query(table='profiles', filters=[ilike('username', 'AL%')]))
        assert [r['username'] for r in rows] == ['alice']
        rows = await any_store.query(Query(table='profiles', any_of=[
            ilike('username', '%zzz%'), ilike('full_name', '%b b%')]))
        assert [r['username'] for r in rows] == ['bob']

    @pytest.mark.asyncio
    async def test_with_profile_join(self, any_store):
        await any_store.create('posts', {'user_id': 'u2', 'image_url': 'x'})
        posts = await any_store.query(Query(table='posts', with_profile=True))
        assert posts[0]['profile'] == {'username': 'bob', 'avatar_url': 'http://img/bob.png'}

    @pytest.mark.asyncio
    async def test_update(self, any_store):
        changed = await any_store.update('profiles', [eq('id', 'u1')], {'bio': 'hello'})
        assert changed == 1
        assert (await any_store.get('profiles', [eq('id', 'u1')]))['bio'] == 'hello'

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, any_store):
        with pytest.raises(RecordNotFound):
            await any_store.get('profiles', [eq('username', 'nobody')])
        assert await any_store.find('profiles', [eq('username', 'nobody')]) is None

    @pytest.mark.asyncio
    async def test_unknown_table(self, any_store):
        with pytest.raises(StoreError):
            await any_store.count('stories')


class TestMemoryStore:
    """In-memory specifics."""

    def test_like_to_regex(self):
        assert like_to_regex('%sun%').match('Sunset at the pier')
        assert like_to_regex('b_b').match('BOB')
        assert not like_to_regex('al%').match('sally')
        assert like_to_regex('100%').match('100% real')

    @pytest.mark.asyncio
    async def test_query_returns_copies(self):
        store = MemoryStore()
        await store.create('profiles', {'id': 'u1', 'username': 'alice'})
        rows = await store.query(Query(table='profiles'))
        rows[0]['username'] = 'mallory'
        assert (await store.get('profiles', [eq('id', 'u1')]))['username'] == 'alice'

    @pytest.mark.asyncio
    async def test_missing_author_profile_is_none(self):
        store = MemoryStore()
        await store.create('comments', {'post_id': 'p', 'user_id': 'ghost', 'content': 'boo'})
        rows = await store.query(Query(table='comments', with_profile=True))
        assert rows[0]['profile'] is None


class TestSQLStore:
    """SQLAlchemy specifics."""

    def test_from_config(self):
        store = SQLStore.from_config({'store': {'url': 'sqlite://', 'echo': False}})
        assert store.engine.url.drivername == 'sqlite'

    def test_bad_url_is_store_error(self, tmp_path):
        with pytest.raises(StoreError):
            SQLStore(url=f"sqlite:///{tmp_path / 'missing' / 'dir' / 'db.sqlite'}")

    @pytest.mark.asyncio
    async def test_unknown_order_column_is_store_error(self):
        store = SQLStore(url='sqlite://')
        with pytest.raises(StoreError):
            await store.query(Query(table='posts', order_by='popularity'))
        await store.close()

"""
Tests for the page view-models: post detail, composer, editor, feed and profile.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from snapgram.exceptions import (
    AuthenticationRequired, AuthorizationDenied, RecordNotFound, StorageError
)
from snapgram.mutations import EventChannel
from snapgram.session import Session
from snapgram.storage import ImageStorage, LocalImageStorage
from snapgram.store.base import eq
from snapgram.views import (
    FollowList, PostComposer, PostDetail, PostEditor, ProfileEditor, ProfileView,
    delete_post, load_feed, load_follow_list
)
from snapgram.views.composer import (
    EDIT_DENIED_MESSAGE, NOT_AN_IMAGE_MESSAGE, NO_IMAGE_MESSAGE, POST_NOT_FOUND_MESSAGE
)


@pytest.fixture
def storage():
    mock = AsyncMock(spec=ImageStorage)
    mock.upload.side_effect = lambda path, data, content_type="image/jpeg": \
        f"http://cdn/instagram/{path}"
    return mock


class TestPostDetail:
    """Counts, like button and author controls."""

    @pytest.mark.asyncio
    async def test_load_counts_and_flags(self, world):
        store = world.store
        post_id = world.post['id']
        await store.create('likes', {'user_id': 'carol-id', 'post_id': post_id})
        await store.create('likes', {'user_id': 'alice-id', 'post_id': post_id})
        await store.create('comments', {'post_id': post_id, 'user_id': 'carol-id',
                                        'content': 'wow'})

        detail = await PostDetail.load(store, world.session, world.post)
        assert detail.likes_count == 2
        assert detail.liked is True
        assert detail.comments_count == 1
        assert detail.is_author is False
        assert detail.follow is not None and detail.follow.value is True

    @pytest.mark.asyncio
    async def test_author_sees_no_follow_button(self, world):
        detail = await PostDetail.load(world.store, Session('bob-id'), world.post)
        assert detail.is_author
        assert detail.follow is None

    @pytest.mark.asyncio
    async def test_signed_out_visitor(self, world):
        detail = await PostDetail.load(world.store, Session(), world.post)
        assert detail.liked is False
        assert not detail.is_author
        assert detail.follow is None

    @pytest.mark.asyncio
    async def test_double_tap_image_likes(self, world, flaky):
        detail = await PostDetail.load(flaky, world.session, world.post)
        assert await detail.tap_image() is False
        assert await detail.tap_image() is True
        assert detail.liked and detail.likes_count == 1
        assert flaky.writes('likes') == [('create', 'likes')]
        detail.close()

    @pytest.mark.asyncio
    async def test_comment_counter_follows_thread(self, world):
        detail = await PostDetail.load(world.store, world.session, world.post)
        detail.comments.draft = "great shot"
        await detail.comments.submit()
        assert detail.comments_count == 1

    @pytest.mark.asyncio
    async def test_failed_counts_fall_back_to_zero(self, world, flaky):
        flaky.fail_ops.add('count')
        detail = await PostDetail.load(flaky, world.session, world.post)
        assert detail.likes_count == 0
        assert detail.comments_count == 0

    @pytest.mark.asyncio
    async def test_only_author_deletes(self, world):
        detail = await PostDetail.load(world.store, world.session, world.post)
        assert await detail.delete() is False
        assert detail.error == "You don't have permission to delete this post"
        assert not detail.deleted

        own = await PostDetail.load(world.store, Session('bob-id'), world.post)
        assert await own.delete() is True
        assert own.deleted and own.error is None
        assert await world.store.count('posts') == 0

    @pytest.mark.asyncio
    async def test_failed_delete_is_inline_and_retryable(self, world, flaky):
        await world.store.create('likes', {'user_id': 'alice-id', 'post_id': world.post['id']})
        detail = await PostDetail.load(flaky, Session('bob-id'), world.post)
        flaky.fail_ops.add('delete')

        assert await detail.delete() is False
        assert detail.error == "Could not delete the post. Please try again."
        assert not detail.deleted
        assert await world.store.count('posts') == 1

        flaky.fail_ops.clear()
        assert await detail.delete() is True
        assert detail.error is None
        assert await world.store.count('posts') == 0
        assert await world.store.count('likes') == 0


class TestPostComposer:
    """Create-post flow."""

    def test_rejects_non_image(self, store, storage):
        composer = PostComposer(store, storage, Session('alice-id'))
        assert composer.choose_file(b"%PDF", "doc.pdf", "application/pdf") is False
        assert composer.error == NOT_AN_IMAGE_MESSAGE
        assert composer.file is None

    @pytest.mark.asyncio
    async def test_submit_uploads_and_inserts(self, world, storage):
        composer = PostComposer(world.store, storage, world.session)
        assert composer.choose_file(b"\x89PNG...", "Beach.PNG", "image/png")
        post = await composer.submit("At the beach @bob")

        path = storage.upload.await_args.args[0]
        assert path.startswith("posts/alice-id/") and path.endswith(".png")
        assert post['image_url'] == f"http://cdn/instagram/{path}"
        assert post['caption'] == "At the beach @bob"
        assert await world.store.count('posts', [eq('user_id', 'alice-id')]) == 1
        assert not composer.uploading

    @pytest.mark.asyncio
    async def test_submit_without_file(self, store, storage):
        composer = PostComposer(store, storage, Session('alice-id'))
        assert await composer.submit("caption") is None
        assert composer.error == NO_IMAGE_MESSAGE
        storage.upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_requires_sign_in(self, store, storage):
        composer = PostComposer(store, storage, Session())
        composer.choose_file(b"data", "a.jpg", "image/jpeg")
        with pytest.raises(AuthenticationRequired):
            await composer.submit()
        assert not composer.uploading

    @pytest.mark.asyncio
    async def test_upload_failure_becomes_inline_error(self, store, storage):
        storage.upload.side_effect = StorageError("bucket unavailable")
        composer = PostComposer(store, storage, Session('alice-id'))
        composer.choose_file(b"data", "a.jpg", "image/jpeg")
        assert await composer.submit() is None
        assert composer.error == "bucket unavailable"
        assert await store.count('posts') == 0

    @pytest.mark.asyncio
    async def test_edit_replaces_file_with_jpeg(self, store, storage, sample_png):
        composer = PostComposer(store, storage, Session('alice-id'))
        composer.choose_file(sample_png, "photo.png", "image/png")
        editor = composer.start_editing()
        editor.select_preset("Lark")
        assert composer.apply_edit()
        assert composer.file.content_type == "image/jpeg"
        assert composer.file.name == "photo.jpg"
        assert composer.file.data[:2] == b"\xff\xd8"
        assert not composer.editing

        await composer.submit()
        assert storage.upload.await_args.args[0].endswith(".jpg")

    def test_edit_of_undecodable_file_cannot_commit(self, store, storage):
        composer = PostComposer(store, storage, Session('alice-id'))
        composer.choose_file(b"not really", "fake.jpg", "image/jpeg")
        editor = composer.start_editing()
        assert editor.load_error
        assert composer.apply_edit() is False
        assert composer.editing
        composer.cancel_edit()
        assert composer.file.data == b"not really"


class TestPostEditor:
    """Caption editing."""

    @pytest.mark.asyncio
    async def test_missing_post(self, world):
        editor = PostEditor(world.store, world.session)
        assert await editor.load("nope") is None
        assert editor.error == POST_NOT_FOUND_MESSAGE

    @pytest.mark.asyncio
    async def test_not_the_author(self, world):
        editor = PostEditor(world.store, world.session)
        assert await editor.load(world.post['id']) is None
        assert editor.error == EDIT_DENIED_MESSAGE == "You don't have permission to edit this post"

    @pytest.mark.asyncio
    async def test_author_saves_caption(self, world):
        editor = PostEditor(world.store, Session('bob-id'))
        await editor.load(world.post['id'])
        assert editor.caption == 'Sunset at the pier'
        assert await editor.save("Sunrise, actually")
        row = await world.store.get('posts', [eq('id', world.post['id'])])
        assert row['caption'] == "Sunrise, actually"
        assert row['updated_at'] >= row['created_at']

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, world):
        with pytest.raises(AuthenticationRequired):
            await PostEditor(world.store, Session()).load(world.post['id'])

    @pytest.mark.asyncio
    async def test_delete_post_checks_author(self, world):
        with pytest.raises(AuthorizationDenied) as excinfo:
            await delete_post(world.store, world.session, world.post)
        assert excinfo.value.resource_id == world.post['id']


class TestFeed:
    """Home feed."""

    @pytest.mark.asyncio
    async def test_own_and_followed_posts_newest_first(self, world):
        store = world.store
        base = datetime(2024, 5, 1, tzinfo=timezone.utc)
        await store.update('posts', [eq('id', world.post['id'])], {'created_at': base})
        mine = await store.create('posts', {'user_id': 'alice-id', 'image_url': 'a',
                                            'created_at': base + timedelta(hours=1)})
        await store.create('posts', {'user_id': 'carol-id', 'image_url': 'c',
                                     'created_at': base + timedelta(hours=2)})

        feed = await load_feed(store, world.session)
        assert [p['id'] for p in feed] == [mine['id'], world.post['id']]
        assert feed[1]['profile']['username'] == 'bob'

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, store):
        with pytest.raises(AuthenticationRequired):
            await load_feed(store, Session())

    @pytest.mark.asyncio
    async def test_store_failure_gives_empty_feed(self, world, flaky):
        flaky.fail_ops.add('query')
        assert await load_feed(flaky, world.session) == []


class TestProfileView:
    """Profile header and follow button."""

    @pytest.mark.asyncio
    async def test_load_profile(self, world):
        view = await ProfileView.load(world.store, world.session, 'bob')
        assert view.stats.posts_count == 1
        assert view.stats.followers_count == 1
        assert view.follow is not None and view.follow.value is True
        assert not view.is_own_profile
        view.close()

    @pytest.mark.asyncio
    async def test_own_profile_has_no_follow_button(self, world):
        view = await ProfileView.load(world.store, world.session, 'alice')
        assert view.is_own_profile
        assert view.follow is None
        assert view.stats.following_count == 1

    @pytest.mark.asyncio
    async def test_unknown_username(self, world):
        with pytest.raises(RecordNotFound):
            await ProfileView.load(world.store, world.session, 'nobody')

    @pytest.mark.asyncio
    async def test_follow_updates_counts_then_refreshes(self, world):
        config = {'follows': {'refresh_delay_ms': 10}}
        view = await ProfileView.load(world.store, Session('carol-id'), 'bob', config=config)
        assert view.follow.label == "Follow"

        await view.follow.toggle()
        assert view.stats.followers_count == 2

        # someone else follows bob behind our back; the delayed refresh sees it
        await world.store.create('follows', {'follower_id': 'bob-id', 'following_id': 'bob-id'})
        await asyncio.sleep(0.05)
        assert view.stats.followers_count == 3
        view.close()

    @pytest.mark.asyncio
    async def test_close_cancels_running_refresh(self, world):
        view = await ProfileView.load(world.store, Session('carol-id'), 'bob')
        view._start_refresh()
        task = view._refresh_task
        view.close()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()


class TestFollowList:
    """Followers and following dialogs."""

    @pytest.mark.asyncio
    async def test_followers_with_me_first(self, world):
        store = world.store
        await store.create('follows', {'follower_id': 'carol-id', 'following_id': 'bob-id'})
        followers = await load_follow_list(store, Session('alice-id'), 'bob', 'followers')
        assert {u['username'] for u in followers.users} == {'alice', 'carol'}
        assert followers.filtered()[0]['username'] == 'alice'
        assert [u['username'] for u in followers.filtered("CAR")] == ['carol']
        assert followers.filtered("zzz") == []
        assert followers.empty_message("zzz") == 'No users found for "zzz"'

    @pytest.mark.asyncio
    async def test_following_marks_my_follows(self, world):
        following = await load_follow_list(world.store, Session('carol-id'), 'alice',
                                           'following')
        assert [u['username'] for u in following.users] == ['bob']
        assert following.followed_by_me == set()
        control = following.follow_control(following.users[0])
        assert control is not None and control.value is False

        mine = await load_follow_list(world.store, world.session, 'alice', 'following')
        assert mine.followed_by_me == {'bob-id'}

    @pytest.mark.asyncio
    async def test_empty_and_missing(self, world):
        empty = await load_follow_list(world.store, world.session, 'carol', 'followers')
        assert empty.users == []
        assert empty.empty_message() == "No followers found."

        missing = await load_follow_list(world.store, world.session, 'nobody', 'followers')
        assert missing.error

    def test_unknown_kind(self, store):
        with pytest.raises(ValueError):
            FollowList(store, Session(), 'bob', 'blocked')


class TestProfileEditor:
    """Profile form."""

    @pytest.mark.asyncio
    async def test_save_with_avatar(self, world, storage):
        editor = ProfileEditor(world.store, storage, world.session)
        await editor.load()
        assert editor.full_name == 'Alice Liddell'
        editor.bio = "Down the rabbit hole"
        editor.choose_avatar(b"img", "me.webp", "image/webp")
        assert await editor.save()

        row = await world.store.get('profiles', [eq('id', 'alice-id')])
        assert row['bio'] == "Down the rabbit hole"
        assert row['avatar_url'] == "http://cdn/instagram/avatars/alice-id/alice-id.webp"

    @pytest.mark.asyncio
    async def test_failed_avatar_upload_keeps_old(self, world, storage):
        storage.upload.side_effect = StorageError("quota")
        editor = ProfileEditor(world.store, storage, Session('bob-id'))
        await editor.load()
        editor.choose_avatar(b"img", "me.png", "image/png")
        assert await editor.save()
        row = await world.store.get('profiles', [eq('id', 'bob-id')])
        assert row['avatar_url'] == 'http://img/bob.png'


class TestLocalImageStorage:
    """Filesystem upload backend."""

    @pytest.mark.asyncio
    async def test_upload_writes_file(self, tmp_path):
        storage = LocalImageStorage(str(tmp_path), base_url="http://cdn/")
        url = await storage.upload("posts/u1/a.jpg", b"jpeg-bytes")
        assert url == "http://cdn/instagram/posts/u1/a.jpg"
        assert (tmp_path / "instagram" / "posts" / "u1" / "a.jpg").read_bytes() == b"jpeg-bytes"

    @pytest.mark.asyncio
    async def test_path_escape_is_rejected(self, tmp_path):
        storage = LocalImageStorage(str(tmp_path))
        with pytest.raises(StorageError):
            await storage.upload("../outside.jpg", b"x")

    def test_from_config(self, tmp_path):
        storage = LocalImageStorage.from_config({'storage': {'root': str(tmp_path),
                                                             'bucket': 'pics'}})
        assert storage.public_url("a.jpg").endswith("/pics/a.jpg")

"""
Profile page view-models: header stats, follow lists and profile editing.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Set
import logging

from ..config import get_config_value
from ..exceptions import RecordNotFound, StorageError
from ..mutations.channel import EventChannel, RelationChanged
from ..mutations.follows import FollowController, ProfileStats, follow_control
from ..mutations.toggle import REMOTE_ERRORS
from ..session import Session
from ..storage import ImageStorage
from ..store.base import DataStore, Query, Row, eq, in_
from .composer import SelectedFile, check_image_type

logger = logging.getLogger(__name__)

FOLLOW_LIST_KINDS = ('followers', 'following')
FOLLOW_REFRESH_DELAY_MS = 500


async def find_profile(store: DataStore, username: str) -> Row:
    """Look a profile up by username or raise RecordNotFound."""
    profile = await store.find('profiles', [eq('username', username)])
    if profile is None:
        raise RecordNotFound(f"Profile not found: {username}", table='profiles')
    return profile


class ProfileView:
    """
    A user's profile page: header, post grid, counts and follow button.

    Follow changes made anywhere on the same channel move the counts at
    once; a short while after the store confirms one, the counts are
    re-derived from the store.
    """

    def __init__(self, store: DataStore, session: Session, profile: Row,
                 posts: List[Row], stats: ProfileStats,
                 channel: EventChannel[RelationChanged],
                 follow: Optional[FollowController] = None,
                 refresh_delay_ms: int = FOLLOW_REFRESH_DELAY_MS):
        self.store = store
        self.session = session
        self.profile = profile
        self.posts = posts
        self.stats = stats
        self.channel = channel
        self.follow = follow
        self.refresh_delay_ms = refresh_delay_ms
        self._refresh_handle: Optional[asyncio.TimerHandle] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = channel.subscribe(self._on_relation_changed)

    @classmethod
    async def load(cls, store: DataStore, session: Session, username: str,
                   channel: Optional[EventChannel[RelationChanged]] = None,
                   config: Optional[Dict[str, Any]] = None) -> 'ProfileView':
        """
        Load a profile page by username.

        Raises:
            RecordNotFound: if no profile has that username
        """
        channel = channel or EventChannel("profile")
        profile = await find_profile(store, username)
        profile_id = profile['id']

        posts = await store.query(Query(
            table='posts',
            filters=[eq('user_id', profile_id)],
            order_by='created_at',
            ascending=False,
        ))
        stats = await ProfileStats.load(store, profile_id, username, channel=channel)

        following = False
        if session.user_id is not None and session.user_id != profile_id:
            following = await store.exists('follows', [eq('follower_id', session.user_id),
                                                       eq('following_id', profile_id)])

        return cls(
            store, session, profile, posts, stats, channel,
            follow=follow_control(store, session, profile_id, following=following,
                                  channel=channel),
            refresh_delay_ms=get_config_value(config, 'follows.refresh_delay_ms',
                                              FOLLOW_REFRESH_DELAY_MS),
        )

    @property
    def is_own_profile(self) -> bool:
        return self.session.user_id == self.profile['id']

    def _on_relation_changed(self, event: RelationChanged) -> None:
        if event.relation != "follow" or not event.confirmed:
            return
        if self.profile['id'] not in (event.target_id, event.actor_id):
            return
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
        loop = asyncio.get_running_loop()
        self._refresh_handle = loop.call_later(self.refresh_delay_ms / 1000.0,
                                               self._start_refresh)

    def _start_refresh(self) -> None:
        self._refresh_handle = None
        self._refresh_task = asyncio.create_task(self.refresh_stats())

    async def refresh_stats(self) -> None:
        try:
            await self.stats.refresh(self.store)
        except REMOTE_ERRORS as e:
            logger.warning(f"Could not refresh counts for {self.profile['username']}: {e}")

    def close(self) -> None:
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.stats.close()
        if self.follow is not None:
            self.follow.dispose()


class FollowList:
    """Followers or followed accounts of one profile, with a search box."""

    def __init__(self, store: DataStore, session: Session, username: str, kind: str,
                 channel: Optional[EventChannel[RelationChanged]] = None):
        if kind not in FOLLOW_LIST_KINDS:
            raise ValueError(f"Unknown follow list: {kind}")
        self.store = store
        self.session = session
        self.username = username
        self.kind = kind
        self.channel = channel
        self.users: List[Row] = []
        self.followed_by_me: Set[str] = set()
        self.error: Optional[str] = None
        self.loading = False

    async def load(self) -> List[Row]:
        self.loading = True
        self.error = None
        self.users = []
        self.followed_by_me = set()
        try:
            profile = await find_profile(self.store, self.username)
            if self.kind == 'followers':
                edge_filter, other_side = eq('following_id', profile['id']), 'follower_id'
            else:
                edge_filter, other_side = eq('follower_id', profile['id']), 'following_id'
            edges = await self.store.query(Query(table='follows', filters=[edge_filter]))
            user_ids = [edge[other_side] for edge in edges]
            if user_ids:
                self.users = await self.store.query(Query(
                    table='profiles', filters=[in_('id', user_ids)]))
            await self._load_my_follows()
        except REMOTE_ERRORS as e:
            logger.error(f"Error fetching {self.kind} of {self.username}: {e}")
            self.error = str(e) or "Failed to load list"
        finally:
            self.loading = False
        return self.users

    async def _load_my_follows(self) -> None:
        me = self.session.user_id
        if me is None or not self.users:
            return
        try:
            rows = await self.store.query(Query(table='follows', filters=[
                eq('follower_id', me), in_('following_id', [u['id'] for u in self.users])]))
        except REMOTE_ERRORS as e:
            logger.error(f"Error fetching follows of current user: {e}")
            return
        self.followed_by_me = {row['following_id'] for row in rows}

    def filtered(self, query: str = "") -> List[Row]:
        """
        Users whose username or full name contains ``query``, case-insensitive.

        In a followers list the signed-in user is moved to the top.
        """
        needle = query.lower()
        users = [
            user for user in self.users
            if not needle
            or needle in user['username'].lower()
            or needle in (user.get('full_name') or '').lower()
        ]
        me = self.session.user_id
        if self.kind == 'followers' and me is not None:
            users = ([u for u in users if u['id'] == me] +
                     [u for u in users if u['id'] != me])
        return users

    def empty_message(self, query: str = "") -> str:
        if query:
            return f'No users found for "{query}"'
        return f"No {self.kind} found."

    def follow_control(self, user: Row) -> Optional[FollowController]:
        return follow_control(self.store, self.session, user['id'],
                              following=user['id'] in self.followed_by_me,
                              channel=self.channel)


async def load_follow_list(store: DataStore, session: Session, username: str, kind: str,
                           channel: Optional[EventChannel[RelationChanged]] = None) -> FollowList:
    follow_list = FollowList(store, session, username, kind, channel=channel)
    await follow_list.load()
    return follow_list


class ProfileEditor:
    """View-model for the signed-in user's profile form."""

    def __init__(self, store: DataStore, storage: ImageStorage, session: Session):
        self.store = store
        self.storage = storage
        self.session = session
        self.profile: Optional[Row] = None
        self.username = ""
        self.full_name = ""
        self.bio = ""
        self.avatar: Optional[SelectedFile] = None
        self.error: Optional[str] = None
        self.saving = False

    async def load(self) -> Optional[Row]:
        user_id = self.session.require_user()
        self.profile = await self.store.find('profiles', [eq('id', user_id)])
        if self.profile is not None:
            self.username = self.profile['username']
            self.full_name = self.profile.get('full_name') or ""
            self.bio = self.profile.get('bio') or ""
        return self.profile

    def choose_avatar(self, data: bytes, name: str, content_type: str) -> None:
        check_image_type(content_type)
        self.avatar = SelectedFile(data=data, name=name, content_type=content_type)

    async def _upload_avatar(self, user_id: str) -> Optional[str]:
        if self.avatar is None:
            return self.profile.get('avatar_url')
        path = f"avatars/{user_id}/{user_id}.{self.avatar.extension}"
        try:
            return await self.storage.upload(path, self.avatar.data, self.avatar.content_type)
        except StorageError as e:
            logger.warning(f"Avatar upload failed, keeping the old one: {e}")
            return self.profile.get('avatar_url')

    async def save(self) -> bool:
        """Write the form back; a failed avatar upload keeps the old avatar."""
        user_id = self.session.require_user()
        if self.profile is None:
            return False

        self.saving = True
        self.error = None
        try:
            values = {
                'username': self.username,
                'full_name': self.full_name,
                'bio': self.bio,
                'avatar_url': await self._upload_avatar(user_id),
            }
            await self.store.update('profiles', [eq('id', user_id)], values)
        except REMOTE_ERRORS as e:
            logger.error(f"Error saving profile {user_id}: {e}")
            self.error = str(e) or "Error saving profile"
            return False
        finally:
            self.saving = False

        self.profile = dict(self.profile, **values)
        self.avatar = None
        return True

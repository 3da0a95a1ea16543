"""
Follow button controller and the profile counters that listen to it.
"""

from typing import Callable, List, Optional
import logging

from ..session import Session
from ..store.base import DataStore, Filter, Row, eq
from .channel import EventChannel, RelationChanged
from .toggle import ToggleController

logger = logging.getLogger(__name__)


class FollowController(ToggleController):
    """Optimistic follow toggle from the signed-in user to one profile."""

    relation = "follow"
    table = "follows"

    def __init__(self, store: DataStore, session: Session, profile_id: str,
                 following: bool = False,
                 channel: Optional[EventChannel[RelationChanged]] = None):
        super().__init__(store, session, profile_id, initial=following, channel=channel)

    @property
    def profile_id(self) -> str:
        return self.target_id

    @property
    def label(self) -> str:
        return "Unfollow" if self.value else "Follow"

    def row_values(self, actor_id: str) -> Row:
        return {'follower_id': actor_id, 'following_id': self.target_id}

    def row_filters(self, actor_id: str) -> List[Filter]:
        return [eq('follower_id', actor_id), eq('following_id', self.target_id)]

    def can_toggle(self, actor_id: str) -> bool:
        return actor_id != self.target_id


def follow_control(store: DataStore, session: Session, profile_id: str,
                   following: bool = False,
                   channel: Optional[EventChannel[RelationChanged]] = None
                   ) -> Optional[FollowController]:
    """
    Build the follow control for a profile, or None when it must not be shown.

    There is no control on your own profile, nor for signed-out visitors.
    """
    actor_id = session.user_id
    if actor_id is None or actor_id == profile_id:
        return None
    return FollowController(store, session, profile_id, following=following, channel=channel)


class ProfileStats:
    """
    Post, follower and following counts for one profile.

    Counts are re-derived from the store on load and adjusted in place by
    follow events published on the shared channel.
    """

    def __init__(self, profile_id: str, username: str, posts_count: int = 0,
                 followers_count: int = 0, following_count: int = 0,
                 channel: Optional[EventChannel[RelationChanged]] = None):
        self.profile_id = profile_id
        self.username = username
        self.posts_count = posts_count
        self.followers_count = followers_count
        self.following_count = following_count
        self._unsubscribe: Optional[Callable[[], None]] = None
        if channel is not None:
            self._unsubscribe = channel.subscribe(self._on_relation_changed)

    @classmethod
    async def load(cls, store: DataStore, profile_id: str, username: str,
                   channel: Optional[EventChannel[RelationChanged]] = None) -> 'ProfileStats':
        stats = cls(profile_id, username, channel=channel)
        await stats.refresh(store)
        return stats

    async def refresh(self, store: DataStore) -> None:
        """Re-derive every count from the store."""
        self.posts_count = await store.count('posts', [eq('user_id', self.profile_id)])
        self.followers_count = await store.count('follows', [eq('following_id', self.profile_id)])
        self.following_count = await store.count('follows', [eq('follower_id', self.profile_id)])

    def _on_relation_changed(self, event: RelationChanged) -> None:
        if event.relation != "follow" or not event.delta:
            return
        if event.target_id == self.profile_id:
            self.followers_count = max(0, self.followers_count + event.delta)
        if event.actor_id == self.profile_id:
            self.following_count = max(0, self.following_count + event.delta)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

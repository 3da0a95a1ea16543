"""
Post detail view-model: like button, comment thread and author controls.
"""

from typing import Any, Dict, Optional
import logging

from ..config import get_config_value
from ..exceptions import AuthorizationDenied
from ..mutations.channel import EventChannel, RelationChanged
from ..mutations.comments import CommentThread
from ..mutations.follows import FollowController, follow_control
from ..mutations.likes import (
    DoubleTapDetector, LikeController, DOUBLE_TAP_WINDOW_MS, LIKE_ANIMATION_MS
)
from ..mutations.toggle import REMOTE_ERRORS
from ..session import Session
from ..store.base import DataStore, Row, eq
from .composer import delete_post

logger = logging.getLogger(__name__)

DELETE_FAILED_MESSAGE = "Could not delete the post. Please try again."


async def _count_or_zero(store: DataStore, table: str, filters) -> int:
    try:
        return await store.count(table, filters)
    except REMOTE_ERRORS as e:
        logger.warning(f"Count on {table} failed: {e}")
        return 0


async def _exists_or_false(store: DataStore, table: str, filters) -> bool:
    try:
        return await store.exists(table, filters)
    except REMOTE_ERRORS as e:
        logger.warning(f"Lookup on {table} failed: {e}")
        return False


class PostDetail:
    """
    Everything shown around one post.

    Build it with ``load``; the like state, both counters and the follow
    state of the author come from count queries against the store.
    """

    def __init__(self, store: DataStore, session: Session, post: Row,
                 like: LikeController, comments: CommentThread,
                 comments_count: int = 0,
                 follow: Optional[FollowController] = None,
                 double_tap: Optional[DoubleTapDetector] = None):
        self.store = store
        self.session = session
        self.post = post
        self.like = like
        self.comments = comments
        self.comments_count = comments_count
        self.follow = follow
        self.double_tap = double_tap or DoubleTapDetector()
        self.deleted = False
        self.error: Optional[str] = None

    @classmethod
    async def load(cls, store: DataStore, session: Session, post: Row,
                   channel: Optional[EventChannel[RelationChanged]] = None,
                   config: Optional[Dict[str, Any]] = None) -> 'PostDetail':
        post_id = post['id']
        user_id = session.user_id

        likes_count = await _count_or_zero(store, 'likes', [eq('post_id', post_id)])
        comments_count = await _count_or_zero(store, 'comments', [eq('post_id', post_id)])

        liked = False
        following_author = False
        if user_id is not None:
            liked = await _exists_or_false(
                store, 'likes', [eq('user_id', user_id), eq('post_id', post_id)])
            following_author = await _exists_or_false(
                store, 'follows',
                [eq('follower_id', user_id), eq('following_id', post['user_id'])])

        like = LikeController(
            store, session, post_id, liked=liked, likes_count=likes_count,
            channel=channel,
            animation_ms=get_config_value(config, 'likes.animation_ms', LIKE_ANIMATION_MS),
        )
        detail = cls(
            store, session, post, like,
            comments=CommentThread(store, session, post_id),
            comments_count=comments_count,
            follow=follow_control(store, session, post['user_id'],
                                  following=following_author, channel=channel),
            double_tap=DoubleTapDetector(
                get_config_value(config, 'likes.double_tap_ms', DOUBLE_TAP_WINDOW_MS)),
        )
        detail.comments.on_count_change = detail._on_comments_count
        return detail

    @property
    def post_id(self) -> str:
        return self.post['id']

    @property
    def is_author(self) -> bool:
        return self.session.user_id is not None and self.session.user_id == self.post['user_id']

    @property
    def likes_count(self) -> int:
        return self.like.likes_count

    @property
    def liked(self) -> bool:
        return self.like.value

    def _on_comments_count(self, count: int) -> None:
        self.comments_count = count

    async def toggle_like(self) -> bool:
        return await self.like.toggle()

    async def tap_image(self) -> bool:
        """
        Register a tap on the image; the second tap of a double tap likes.

        Returns:
            True when the tap completed a double tap
        """
        if not self.double_tap.tap():
            return False
        await self.like.like_from_double_tap()
        return True

    async def delete(self) -> bool:
        """
        Delete the post; only its author may do this.

        Returns:
            True once the post is gone. Otherwise ``error`` holds the
            message and the post stays on screen.
        """
        self.error = None
        try:
            await delete_post(self.store, self.session, self.post)
        except AuthorizationDenied as e:
            self.error = e.message
            return False
        except REMOTE_ERRORS as e:
            logger.error(f"Error deleting post {self.post_id}: {e}")
            self.error = DELETE_FAILED_MESSAGE
            return False
        self.deleted = True
        self.close()
        return True

    def close(self) -> None:
        self.like.dispose()
        self.comments.dispose()
        if self.follow is not None:
            self.follow.dispose()

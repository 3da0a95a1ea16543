"""
Comment thread for one post with optimistic append.

A submitted comment shows up at once as a placeholder row carrying a
``temp-`` id; once the insert succeeds the thread is refetched and
replaced wholesale, which drops the placeholder. If the insert fails the
placeholder is removed, the draft is restored, and ``error`` is set.
"""

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import logging

from ..session import Session
from ..store.base import DataStore, Query, Row, eq
from .toggle import REMOTE_ERRORS

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "temp-"
COMMENT_FAILED_MESSAGE = "Could not post your comment. Please try again."

_temp_ids = itertools.count(1)


def make_temp_id() -> str:
    """Locally-unique id for a comment that has not reached the store yet."""
    return f"{TEMP_ID_PREFIX}{int(time.time() * 1000)}-{next(_temp_ids)}"


@dataclass
class Comment:
    """A comment row as shown in the thread."""
    id: str
    post_id: str
    user_id: str
    content: str
    created_at: Any = None
    profile: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_placeholder(self) -> bool:
        return str(self.id).startswith(TEMP_ID_PREFIX)

    @property
    def username(self) -> Optional[str]:
        return self.profile.get('username')

    @classmethod
    def from_row(cls, row: Row) -> 'Comment':
        return cls(
            id=str(row['id']),
            post_id=row['post_id'],
            user_id=row['user_id'],
            content=row['content'],
            created_at=row.get('created_at'),
            profile=dict(row.get('profile') or {}),
        )


class CommentThread:
    """
    View-model for the comment list and the draft box under a post.

    ``on_count_change`` is called with the new number of comments every
    time the list length changes, so the post can keep its counter in sync.
    """

    def __init__(self, store: DataStore, session: Session, post_id: str,
                 on_count_change: Optional[Callable[[int], None]] = None):
        self.store = store
        self.session = session
        self.post_id = post_id
        self.on_count_change = on_count_change
        self.comments: List[Comment] = []
        self.draft = ""
        self.error: Optional[str] = None
        self.loading = False
        self.submitting = False
        self._disposed = False

    def __len__(self) -> int:
        return len(self.comments)

    @property
    def can_submit(self) -> bool:
        return bool(self.draft.strip()) and not self.submitting

    def dispose(self) -> None:
        self._disposed = True

    def _set_comments(self, comments: List[Comment]) -> None:
        previous = len(self.comments)
        self.comments = comments
        if len(comments) != previous and self.on_count_change is not None:
            self.on_count_change(len(comments))

    async def load(self) -> List[Comment]:
        """Fetch the thread oldest first with each author's profile summary."""
        self.loading = True
        try:
            rows = await self.store.query(Query(
                table='comments',
                filters=[eq('post_id', self.post_id)],
                order_by='created_at',
                ascending=True,
                with_profile=True,
            ))
        except REMOTE_ERRORS as e:
            logger.error(f"Failed to load comments for post {self.post_id}: {e}")
            return self.comments
        finally:
            self.loading = False

        if not self._disposed:
            self._set_comments([Comment.from_row(row) for row in rows])
        return self.comments

    async def _author_profile(self, user_id: str) -> Dict[str, Any]:
        try:
            profile = await self.store.find('profiles', [eq('id', user_id)])
        except Exception as e:
            logger.warning(f"Could not look up profile {user_id}: {e}")
            profile = None
        if profile is None:
            return {}
        return {'username': profile.get('username'),
                'avatar_url': profile.get('avatar_url')}

    def _rollback(self, placeholder: Comment, content: str) -> None:
        if self._disposed:
            return
        self._set_comments([c for c in self.comments if c.id != placeholder.id])
        if not self.draft:
            self.draft = content
        self.error = COMMENT_FAILED_MESSAGE

    async def submit(self) -> bool:
        """
        Post the current draft.

        Returns:
            True if the comment was stored, False if the draft was blank
            or the insert failed.

        Raises:
            AuthenticationRequired: if nobody is signed in
        """
        content = self.draft
        if not content.strip():
            return False
        user_id = self.session.require_user()

        self.submitting = True
        self.error = None
        try:
            placeholder = Comment(
                id=make_temp_id(),
                post_id=self.post_id,
                user_id=user_id,
                content=content,
                created_at=datetime.now(timezone.utc),
                profile=await self._author_profile(user_id),
            )
            self._set_comments(self.comments + [placeholder])
            self.draft = ""

            try:
                await self.store.create('comments', {
                    'post_id': self.post_id,
                    'user_id': user_id,
                    'content': content,
                })
            except asyncio.CancelledError:
                self._rollback(placeholder, content)
                raise
            except Exception as e:
                logger.error(f"Failed to add comment to post {self.post_id}: {e!r}")
                self._rollback(placeholder, content)
                return False

            if not self._disposed:
                await self.load()
            return True
        finally:
            self.submitting = False

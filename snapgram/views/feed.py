"""
Home feed: posts by the signed-in user and everyone they follow.
"""

from typing import List
import logging

from ..mutations.toggle import REMOTE_ERRORS
from ..session import Session
from ..store.base import DataStore, Query, Row, eq, in_

logger = logging.getLogger(__name__)


async def followed_ids(store: DataStore, user_id: str) -> List[str]:
    """Ids of the profiles ``user_id`` follows."""
    rows = await store.query(Query(table='follows', filters=[eq('follower_id', user_id)]))
    return [row['following_id'] for row in rows]


async def load_feed(store: DataStore, session: Session) -> List[Row]:
    """
    Load the feed newest first, each post carrying its author's profile.

    Returns:
        Feed posts; an empty list if the store call fails

    Raises:
        AuthenticationRequired: if nobody is signed in
    """
    user_id = session.require_user()
    try:
        author_ids = [user_id] + await followed_ids(store, user_id)
        posts = await store.query(Query(
            table='posts',
            filters=[in_('user_id', author_ids)],
            order_by='created_at',
            ascending=False,
            with_profile=True,
        ))
    except REMOTE_ERRORS as e:
        logger.error(f"Error fetching feed for {user_id}: {e}")
        return []

    logger.debug(f"Feed for {user_id}: {len(posts)} posts from {len(author_ids)} authors")
    return posts

"""
Optimistic mutation controllers for Snapgram

Like and follow toggles, the comment thread, and the event channel that
lets sibling views hear about each other's changes.
"""

from .channel import EventChannel, RelationChanged
from .toggle import ToggleController, MutationStatus, REMOTE_ERRORS
from .likes import LikeController, DoubleTapDetector
from .follows import FollowController, ProfileStats, follow_control
from .comments import Comment, CommentThread

__all__ = [
    "EventChannel",
    "RelationChanged",
    "ToggleController",
    "MutationStatus",
    "REMOTE_ERRORS",
    "LikeController",
    "DoubleTapDetector",
    "FollowController",
    "ProfileStats",
    "follow_control",
    "Comment",
    "CommentThread",
]

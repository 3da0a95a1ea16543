"""
View-models for Snapgram pages

Each view-model owns its local state and talks to the store, image
storage and session collaborators it is handed.
"""

from .composer import (
    PostComposer, PostEditor, SelectedFile, delete_post, ensure_author, check_image_type
)
from .feed import load_feed
from .post_detail import PostDetail
from .profile import (
    ProfileView, ProfileEditor, FollowList, load_follow_list, find_profile
)

__all__ = [
    "PostComposer",
    "PostEditor",
    "SelectedFile",
    "delete_post",
    "ensure_author",
    "check_image_type",
    "load_feed",
    "PostDetail",
    "ProfileView",
    "ProfileEditor",
    "FollowList",
    "load_follow_list",
    "find_profile",
]

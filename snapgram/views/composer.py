"""
Post creation, caption editing and deletion.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from ..editor.compositor import FilterCompositor
from ..exceptions import AuthorizationDenied, InvalidImageError, StorageError
from ..mutations.toggle import REMOTE_ERRORS
from ..session import Session
from ..storage import ImageStorage
from ..store.base import DataStore, Row, eq

logger = logging.getLogger(__name__)

NOT_AN_IMAGE_MESSAGE = "Please select an image file"
NO_IMAGE_MESSAGE = "Please select an image to upload"
POST_NOT_FOUND_MESSAGE = "Post not found"
EDIT_DENIED_MESSAGE = "You don't have permission to edit this post"
DELETE_DENIED_MESSAGE = "You don't have permission to delete this post"
EDITED_FILE_NAME = "edited-image.jpg"

# Upload failures turned into inline error text
UPLOAD_ERRORS = REMOTE_ERRORS + (StorageError,)


@dataclass
class SelectedFile:
    """Image bytes picked for upload."""
    data: bytes
    name: str
    content_type: str

    @property
    def extension(self) -> str:
        if '.' in self.name:
            return self.name.rsplit('.', 1)[-1].lower()
        return 'jpg'


def ensure_author(post: Row, user_id: str, message: str) -> None:
    """Raise AuthorizationDenied unless ``user_id`` wrote ``post``."""
    if post.get('user_id') != user_id:
        raise AuthorizationDenied(message, resource_id=post.get('id'))


def check_image_type(content_type: str) -> None:
    """Raise InvalidImageError unless the content type is an image type."""
    if not (content_type or "").startswith("image/"):
        raise InvalidImageError(NOT_AN_IMAGE_MESSAGE)


def upload_path(user_id: str, extension: str) -> str:
    """Storage path for a new post image: ``posts/<user>/<random>.<ext>``."""
    return f"posts/{user_id}/{secrets.token_hex(8)}.{extension}"


class PostComposer:
    """
    View-model for the create-post page.

    Pick a file, optionally run it through the photo editor, then submit
    it with a caption. Problems end up in ``error`` as user-facing text.
    """

    def __init__(self, store: DataStore, storage: ImageStorage, session: Session,
                 config: Optional[Dict[str, Any]] = None):
        self.store = store
        self.storage = storage
        self.session = session
        self.config = config or {}
        self.file: Optional[SelectedFile] = None
        self.caption = ""
        self.error: Optional[str] = None
        self.uploading = False
        self.editor: Optional[FilterCompositor] = None

    @property
    def editing(self) -> bool:
        return self.editor is not None

    def choose_file(self, data: bytes, name: str, content_type: str) -> bool:
        """Select the image to post; non-image files are refused."""
        try:
            check_image_type(content_type)
        except InvalidImageError as e:
            self.error = str(e)
            return False
        self.file = SelectedFile(data=data, name=name, content_type=content_type)
        self.error = None
        return True

    def start_editing(self) -> Optional[FilterCompositor]:
        """Open the photo editor over the selected file."""
        if self.file is None:
            self.error = NO_IMAGE_MESSAGE
            return None
        editor = FilterCompositor.from_config(self.config)
        editor.load(self.file.data)
        self.editor = editor
        return editor

    def apply_edit(self) -> bool:
        """
        Replace the selected file with the editor's JPEG export.

        Returns:
            False, leaving the editor open, when there is nothing to export
        """
        if self.editor is None or not self.editor.can_export:
            return False
        blob = self.editor.export()
        if blob is None:
            return False
        base = self.file.name.rsplit('.', 1)[0] if self.file and '.' in self.file.name else None
        self.file = SelectedFile(
            data=blob,
            name=f"{base}.jpg" if base else EDITED_FILE_NAME,
            content_type="image/jpeg",
        )
        self.editor = None
        return True

    def cancel_edit(self) -> None:
        self.editor = None

    async def submit(self, caption: Optional[str] = None) -> Optional[Row]:
        """
        Upload the image and create the post.

        Returns:
            The created post row, or None with ``error`` set

        Raises:
            AuthenticationRequired: if nobody is signed in
        """
        if caption is not None:
            self.caption = caption
        if self.file is None:
            self.error = NO_IMAGE_MESSAGE
            return None

        self.uploading = True
        self.error = None
        try:
            user_id = self.session.require_user()
            path = upload_path(user_id, self.file.extension)
            image_url = await self.storage.upload(path, self.file.data, self.file.content_type)
            post = await self.store.create('posts', {
                'user_id': user_id,
                'caption': self.caption,
                'image_url': image_url,
            })
        except UPLOAD_ERRORS as e:
            logger.error(f"Error creating post: {e}")
            self.error = str(e) or "Error creating post"
            return None
        finally:
            self.uploading = False

        logger.info(f"Created post {post['id']}")
        return post


class PostEditor:
    """View-model for editing the caption of one's own post."""

    def __init__(self, store: DataStore, session: Session):
        self.store = store
        self.session = session
        self.post: Optional[Row] = None
        self.caption = ""
        self.error: Optional[str] = None
        self.loading = False
        self.saving = False

    async def load(self, post_id: str) -> Optional[Row]:
        """
        Load a post for editing.

        Raises:
            AuthenticationRequired: if nobody is signed in
        """
        user_id = self.session.require_user()
        self.loading = True
        self.error = None
        try:
            post = await self.store.find('posts', [eq('id', post_id)])
            if post is None:
                self.error = POST_NOT_FOUND_MESSAGE
                return None
            ensure_author(post, user_id, EDIT_DENIED_MESSAGE)
        except AuthorizationDenied as e:
            self.error = e.message
            return None
        except REMOTE_ERRORS as e:
            logger.error(f"Error loading post {post_id}: {e}")
            self.error = str(e) or "Error loading post"
            return None
        finally:
            self.loading = False

        self.post = post
        self.caption = post.get('caption') or ""
        return post

    async def save(self, caption: Optional[str] = None) -> bool:
        if self.post is None:
            return False
        if caption is not None:
            self.caption = caption

        self.saving = True
        self.error = None
        try:
            await self.store.update('posts', [eq('id', self.post['id'])], {
                'caption': self.caption,
                'updated_at': datetime.now(timezone.utc),
            })
        except REMOTE_ERRORS as e:
            logger.error(f"Error updating post {self.post['id']}: {e}")
            self.error = str(e) or "Error updating post"
            return False
        finally:
            self.saving = False

        self.post = dict(self.post, caption=self.caption)
        return True


async def delete_post(store: DataStore, session: Session, post: Row) -> None:
    """
    Delete a post together with its likes and comments.

    Raises:
        AuthenticationRequired: if nobody is signed in
        AuthorizationDenied: if the acting user is not the author
    """
    user_id = session.require_user()
    ensure_author(post, user_id, DELETE_DENIED_MESSAGE)
    post_id = post['id']
    await store.delete('likes', [eq('post_id', post_id)])
    await store.delete('comments', [eq('post_id', post_id)])
    await store.delete('posts', [eq('id', post_id)])
    logger.info(f"Deleted post {post_id}")

"""
Image storage for uploaded post photos.

``ImageStorage`` is the upload collaborator: it stores a blob under a
relative path and hands back a stable public URL for the post record.
"""

from abc import ABC, abstractmethod
import asyncio
from functools import partial
from pathlib import Path
from typing import Any, Dict
import logging

from .config import get_config_value
from .exceptions import StorageError

logger = logging.getLogger(__name__)


class ImageStorage(ABC):
    """Abstract base class for image upload backends."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        """Store ``data`` at ``path`` and return its public URL."""
        pass

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Public URL for an object path."""
        pass


class LocalImageStorage(ImageStorage):
    """Stores uploads in a bucket directory on the local filesystem."""

    def __init__(self, root: str, bucket: str = "instagram",
                 base_url: str = "http://localhost:8000/storage"):
        self.base_path = Path(root) / bucket
        self.bucket = bucket
        self.base_url = base_url.rstrip('/')
        self.base_path.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'LocalImageStorage':
        return cls(
            root=get_config_value(config, 'storage.root', './media'),
            bucket=get_config_value(config, 'storage.bucket', 'instagram'),
            base_url=get_config_value(config, 'storage.base_url', 'http://localhost:8000/storage'),
        )

    def _full_path(self, path: str) -> Path:
        """Get full path from relative path."""
        full_path = self.base_path / path
        try:
            full_path.resolve().relative_to(self.base_path.resolve())
        except ValueError:
            raise StorageError(f"Path '{path}' is outside the bucket")
        return full_path

    def _write(self, path: str, data: bytes) -> None:
        full_path = self._full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(data)

    async def upload(self, path: str, data: bytes, content_type: str = "image/jpeg") -> str:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, partial(self._write, path, data))
        except OSError as e:
            logger.error(f"Upload of {path} failed: {e}")
            raise StorageError(f"Upload failed: {e}") from e
        logger.info(f"Uploaded {len(data)} bytes to {self.bucket}/{path}")
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{self.bucket}/{path}"

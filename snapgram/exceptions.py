"""
Exception hierarchy for Snapgram.

Remote failures are caught where the call is made and turned into local
view state; these types only travel between a collaborator and the
controller or view-model that invoked it.
"""

from typing import Optional


class SnapgramError(Exception):
    """Base exception for Snapgram."""
    pass


class AuthenticationRequired(SnapgramError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "Not authenticated", redirect_to: str = "/login"):
        super().__init__(message)
        self.redirect_to = redirect_to


class AuthorizationDenied(SnapgramError):
    """Raised when the acting user may not touch another user's resource."""

    def __init__(self, message: str, resource_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.resource_id = resource_id


class StoreError(SnapgramError):
    """Raised when the remote data store rejects or fails a call."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class RecordNotFound(StoreError):
    """Raised when a single-row lookup matches nothing."""
    pass


class StorageError(SnapgramError):
    """Raised when an image upload fails."""
    pass


class ImageLoadError(SnapgramError):
    """Raised when a source image cannot be decoded."""
    pass


class InvalidImageError(SnapgramError):
    """Raised when a file handed to the post composer is not an image."""
    pass

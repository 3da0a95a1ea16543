"""
Signed-in user for the current view session.
"""

from typing import Optional
import logging

from .exceptions import AuthenticationRequired

logger = logging.getLogger(__name__)


class Session:
    """Holds the acting user's id as handed over by the auth provider."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str) -> None:
        self._user_id = user_id
        logger.debug(f"Signed in as {user_id}")

    def sign_out(self) -> None:
        self._user_id = None

    def require_user(self) -> str:
        """Return the acting user id or raise AuthenticationRequired."""
        if self._user_id is None:
            raise AuthenticationRequired()
        return self._user_id

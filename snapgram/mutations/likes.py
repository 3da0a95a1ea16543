"""
Like button controller with optimistic like count and double-tap support.
"""

import asyncio
import time
from typing import Callable, List, Optional
import logging

from ..session import Session
from ..store.base import DataStore, Filter, Row, eq
from .channel import EventChannel, RelationChanged
from .toggle import ToggleController

logger = logging.getLogger(__name__)

LIKE_ANIMATION_MS = 600
DOUBLE_TAP_WINDOW_MS = 300


class LikeController(ToggleController):
    """
    Optimistic like toggle for one post.

    ``likes_count`` moves with the local value and is put back together
    with it on revert. Liking raises ``animating`` for a short moment.
    """

    relation = "like"
    table = "likes"

    def __init__(self, store: DataStore, session: Session, post_id: str,
                 liked: bool = False, likes_count: int = 0,
                 channel: Optional[EventChannel[RelationChanged]] = None,
                 animation_ms: int = LIKE_ANIMATION_MS):
        super().__init__(store, session, post_id, initial=liked, channel=channel)
        self.likes_count = likes_count
        self.animation_ms = animation_ms
        self.animating = False
        self._animation_handle: Optional[asyncio.TimerHandle] = None

    @property
    def post_id(self) -> str:
        return self.target_id

    def row_values(self, actor_id: str) -> Row:
        return {'user_id': actor_id, 'post_id': self.target_id}

    def row_filters(self, actor_id: str) -> List[Filter]:
        return [eq('user_id', actor_id), eq('post_id', self.target_id)]

    def _apply_delta(self, delta: int) -> None:
        self.likes_count = max(0, self.likes_count + delta)

    def _on_local_change(self, value: bool) -> None:
        if value:
            self._start_animation()

    def _start_animation(self) -> None:
        self.animating = True
        if self._animation_handle is not None:
            self._animation_handle.cancel()
        loop = asyncio.get_running_loop()
        self._animation_handle = loop.call_later(self.animation_ms / 1000.0,
                                                 self._stop_animation)

    def _stop_animation(self) -> None:
        self.animating = False
        self._animation_handle = None

    async def like_from_double_tap(self) -> bool:
        """Like the post; a double tap never unlikes."""
        if self.value:
            return self.value
        return await self.toggle()

    def dispose(self) -> None:
        super().dispose()
        if self._animation_handle is not None:
            self._animation_handle.cancel()
            self._animation_handle = None


class DoubleTapDetector:
    """Reports a double tap when two taps land within the window."""

    def __init__(self, window_ms: int = DOUBLE_TAP_WINDOW_MS,
                 clock: Callable[[], float] = time.monotonic):
        self.window_ms = window_ms
        self._clock = clock
        self._last_tap: Optional[float] = None

    def tap(self) -> bool:
        now = self._clock()
        if self._last_tap is not None and (now - self._last_tap) * 1000.0 <= self.window_ms:
            self._last_tap = None
            return True
        self._last_tap = now
        return False

    def reset(self) -> None:
        self._last_tap = None

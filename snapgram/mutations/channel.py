"""
Typed publish/subscribe channel scoped to one view tree.

Views that need to hear about each other's mutations (a follow button and
the follower count beside it) share a channel instance; nothing is global.
"""

from dataclasses import dataclass
from typing import Callable, Generic, List, TypeVar
import logging

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class RelationChanged:
    """
    A like or follow edge changed in local view state.

    ``delta`` is +1/-1 for optimistic applies and reverts, and 0 for the
    confirmation sent once the remote write succeeds.
    """
    relation: str  # "like" or "follow"
    actor_id: str
    target_id: str
    value: bool
    delta: int
    confirmed: bool = False


class EventChannel(Generic[T]):
    """Synchronous fan-out of events to subscribed handlers."""

    def __init__(self, name: str = "events"):
        self.name = name
        self._handlers: List[Callable[[T], None]] = []

    def subscribe(self, handler: Callable[[T], None]) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: T) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler on channel '{self.name}' failed: {e}")

    def __len__(self) -> int:
        return len(self._handlers)

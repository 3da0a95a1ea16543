"""
Optimistic toggle controller for boolean relations (likes, follows).

The local value flips the moment the user acts; the remote write follows.
A failed write, whatever the error, puts the value back to the last state
the store confirmed.

Toggles made while a write is in flight only change the local intent.
When the in-flight write settles, at most one follow-up write brings the
store in line with the latest intent, so two writes for the same control
are never in flight at once and never land out of order.
"""

import asyncio
from enum import Enum
from typing import List, Optional
import logging

from ..exceptions import StoreError
from ..session import Session
from ..store.base import DataStore, Filter, Row
from ..utils.logging import StructuredLogger
from .channel import EventChannel, RelationChanged

logger = logging.getLogger(__name__)

# Store and transport failures that view-models turn into inline state
REMOTE_ERRORS = (StoreError, OSError, asyncio.TimeoutError)


class MutationStatus(Enum):
    """Lifecycle of a toggle control"""
    IDLE = "idle"
    PENDING = "pending"
    REVERTING = "reverting"


class ToggleController:
    """
    Base optimistic controller for one (actor, target) relation.

    Subclasses set ``relation`` and ``table`` and describe the row that
    represents the relation.
    """

    relation = "relation"
    table = ""

    def __init__(self, store: DataStore, session: Session, target_id: str,
                 initial: bool = False,
                 channel: Optional[EventChannel[RelationChanged]] = None):
        self.store = store
        self.session = session
        self.target_id = target_id
        self.channel = channel
        self.status = MutationStatus.IDLE
        self.last_error: Optional[BaseException] = None
        self.write_count = 0
        self._value = initial
        self._confirmed = initial
        self._disposed = False
        self._log = StructuredLogger(__name__, {'relation': self.relation,
                                                'target': target_id})

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def value(self) -> bool:
        """Value shown to the user."""
        return self._value

    @property
    def confirmed(self) -> bool:
        """Last value the store acknowledged."""
        return self._confirmed

    @property
    def is_pending(self) -> bool:
        return self.status is MutationStatus.PENDING

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Detach from the view; late results no longer touch state."""
        self._disposed = True

    # ------------------------------------------------------------------
    # relation row, overridden by subclasses
    # ------------------------------------------------------------------
    def row_values(self, actor_id: str) -> Row:
        raise NotImplementedError

    def row_filters(self, actor_id: str) -> List[Filter]:
        raise NotImplementedError

    def can_toggle(self, actor_id: str) -> bool:
        return True

    def _apply_delta(self, delta: int) -> None:
        """Hook for dependent local state such as counters."""
        pass

    def _on_local_change(self, value: bool) -> None:
        """Hook for a change the user made; reverts do not call it."""
        pass

    # ------------------------------------------------------------------
    # transitions
    # ------------------------------------------------------------------
    def _publish(self, actor_id: str, delta: int, confirmed: bool) -> None:
        if self.channel is None:
            return
        self.channel.publish(RelationChanged(
            relation=self.relation,
            actor_id=actor_id,
            target_id=self.target_id,
            value=self._value,
            delta=delta,
            confirmed=confirmed,
        ))

    def _set_local(self, actor_id: str, value: bool, user_initiated: bool = True) -> None:
        if value == self._value:
            return
        delta = 1 if value else -1
        self._value = value
        self._apply_delta(delta)
        if user_initiated:
            self._on_local_change(value)
        self._publish(actor_id, delta, confirmed=False)

    def _revert(self, actor_id: str, desired: bool, error: BaseException) -> None:
        self.last_error = error
        self.status = MutationStatus.REVERTING
        self._log.error("Remote write failed, reverting",
                        actor=actor_id, desired=desired,
                        error=str(error) or type(error).__name__)
        self._set_local(actor_id, self._confirmed, user_initiated=False)

    async def _write(self, actor_id: str, value: bool) -> None:
        self.write_count += 1
        if value:
            await self.store.create(self.table, self.row_values(actor_id))
        else:
            await self.store.delete(self.table, self.row_filters(actor_id))

    async def toggle(self) -> bool:
        """
        Flip the relation for the signed-in user.

        Returns:
            The local value after this call. When a write is already in
            flight this returns at once with the new intent.

        Raises:
            AuthenticationRequired: if nobody is signed in
        """
        actor_id = self.session.require_user()
        if self._disposed or not self.can_toggle(actor_id):
            return self._value

        self._set_local(actor_id, not self._value)
        if self.status is MutationStatus.PENDING:
            logger.debug(f"{self.relation} toggled while pending; superseding intent")
            return self._value

        await self._reconcile(actor_id)
        return self._value

    async def _reconcile(self, actor_id: str) -> None:
        try:
            while not self._disposed and self._value != self._confirmed:
                desired = self._value
                self.status = MutationStatus.PENDING
                try:
                    await self._write(actor_id, desired)
                except asyncio.CancelledError as e:
                    if not self._disposed:
                        self._revert(actor_id, desired, e)
                    raise
                except Exception as e:
                    if self._disposed:
                        return
                    self._revert(actor_id, desired, e)
                    break

                if self._disposed:
                    return
                self._confirmed = desired
                self.last_error = None
                self._publish(actor_id, 0, confirmed=True)
        finally:
            if not self._disposed:
                self.status = MutationStatus.IDLE

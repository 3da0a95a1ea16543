"""
Trailing-edge debounce for coroutine functions.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Delay calls to ``func`` until ``delay_ms`` has passed without another call.

    Only the last call's arguments are used. ``cancel`` drops a pending
    call; a call already running is left to finish.
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], delay_ms: int = 300):
        """
        Initialize the debouncer.

        Args:
            func: Coroutine function to invoke
            delay_ms: Quiet period in milliseconds before the call fires
        """
        self.func = func
        self.delay_ms = delay_ms
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: Tuple[Any, ...] = ()
        self._kwargs: Dict[str, Any] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a call is scheduled but has not fired yet."""
        return self._handle is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def call(self, *args, **kwargs) -> None:
        """Schedule ``func(*args, **kwargs)``, restarting the quiet period."""
        if self._handle is not None:
            self._handle.cancel()
        self._args = args
        self._kwargs = kwargs
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._args = ()
        self._kwargs = {}

    def _take_call(self) -> Tuple[Tuple[Any, ...], Dict[str, Any]]:
        args, kwargs = self._args, self._kwargs
        self._handle = None
        self._args = ()
        self._kwargs = {}
        return args, kwargs

    def _fire(self) -> None:
        args, kwargs = self._take_call()
        self._task = asyncio.create_task(self._run(args, kwargs))

    async def _run(self, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        try:
            return await self.func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Debounced call to {getattr(self.func, '__name__', self.func)} failed: {e}")
            return None

    async def flush(self) -> Any:
        """Run a pending call now and return its result; no-op if none is pending."""
        if self._handle is None:
            return None
        self._handle.cancel()
        args, kwargs = self._take_call()
        return await self._run(args, kwargs)

    async def join(self) -> None:
        """Wait for a call that has already fired to finish."""
        if self._task is not None:
            await self._task

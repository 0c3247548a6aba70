"""Per-mount cancellation token.

Every asynchronous result (fetch completion, task completion, timer) is
applied through the lifetime of the consumer that requested it. Once the
lifetime is cancelled, late results are dropped at that single point; the
work that produced them is not cancelled upstream.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional, Set, TypeVar
from uuid import uuid4


logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class ConsumerLifetime:
    def __init__(self, label: str = "") -> None:
        self.lifetime_id = uuid4().hex[:8]
        self.label = label
        self._cancelled = False
        self._tasks: Set[asyncio.Task] = set()
        self._timers: Set[asyncio.TimerHandle] = set()

    @property
    def alive(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        """Stop applying results. Tracked tasks keep running to completion."""
        if self._cancelled:
            return
        self._cancelled = True
        for timer in list(self._timers):
            timer.cancel()
        self._timers.clear()
        logger.debug("lifetime %s (%s) cancelled, %d task(s) still settling", self.lifetime_id, self.label, len(self._tasks))

    def guard(self, fn: F) -> F:
        """Wrap a callback so it becomes a no-op once the lifetime is cancelled."""

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if self._cancelled:
                logger.debug("lifetime %s: dropped late call to %s", self.lifetime_id, getattr(fn, "__name__", fn))
                return None
            return fn(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    def spawn(self, coro: Awaitable[Any], *, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def call_later(self, delay: float, fn: Callable[[], Any]) -> Optional[asyncio.TimerHandle]:
        if self._cancelled:
            return None
        loop = asyncio.get_running_loop()
        timer: Optional[asyncio.TimerHandle] = None

        def _fire() -> None:
            self._timers.discard(timer)
            if not self._cancelled:
                fn()

        timer = loop.call_later(delay, _fire)
        self._timers.add(timer)
        return timer

    def cancel_timer(self, timer: Optional[asyncio.TimerHandle]) -> None:
        if timer is None:
            return
        timer.cancel()
        self._timers.discard(timer)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for tracked tasks to settle (their results are still gated)."""
        tasks = list(self._tasks)
        if not tasks:
            return
        await asyncio.wait(tasks, timeout=timeout)

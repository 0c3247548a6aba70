"""Readiness State Machine: gates artifact fetches on readiness pings."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from core import ConsumerState, ReadinessPing
from utils.exceptions import ConsumerStateError

from .lifetime import ConsumerLifetime


logger = logging.getLogger(__name__)

T = TypeVar("T")

_FETCHABLE = {ConsumerState.AWAITING_READY, ConsumerState.ERROR}


class ReadinessStateMachine(Generic[T]):
    """idle -> awaiting_ready -> fetching -> ready | error.

    A ready ping starts a fetch only from ``awaiting_ready`` (or ``error``,
    whose guard is already cleared). A not-ready ping invalidates whatever was
    fetched or is being fetched. At most one fetch runs at a time: a fetch made
    stale by invalidation keeps running, and a fetch requested meanwhile is
    started once it settles.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        lifetime: ConsumerLifetime,
        *,
        on_failure: Optional[Callable[[Exception], None]] = None,
        on_transition: Optional[Callable[[ConsumerState, ConsumerState], None]] = None,
        label: str = "",
    ) -> None:
        self._fetch = fetch
        self._apply = apply
        self._lifetime = lifetime
        self._on_failure = on_failure
        self._on_transition = on_transition
        self.label = label
        self._state = ConsumerState.IDLE
        self.error: Optional[str] = None
        self.fetch_count = 0
        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None
        self._queued = False

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def fetch_in_flight(self) -> bool:
        return self._inflight is not None

    def start(self) -> None:
        if self._state != ConsumerState.IDLE:
            raise ConsumerStateError(f"{self.label or 'consumer'} already started", {"state": self._state.value})
        self._set_state(ConsumerState.AWAITING_READY)

    def handle(self, ping: ReadinessPing) -> None:
        if not self._lifetime.alive or self._state == ConsumerState.IDLE:
            return
        if ping.ready:
            self._on_ready()
        else:
            self._on_invalidated()

    def fail(self, exc: Exception) -> None:
        """Force the terminal error state (e.g. the channel dropped)."""
        if not self._lifetime.alive:
            return
        self._generation += 1
        self._queued = False
        self.error = str(exc) or exc.__class__.__name__
        self._set_state(ConsumerState.ERROR)

    def _set_state(self, new_state: ConsumerState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.debug("[%s] %s -> %s", self.label, old_state.value, new_state.value)
        if self._on_transition is not None:
            self._on_transition(old_state, new_state)

    def _on_ready(self) -> None:
        if self._state not in _FETCHABLE:
            logger.debug("[%s] ready ping ignored in %s", self.label, self._state.value)
            return
        self.error = None
        self._set_state(ConsumerState.FETCHING)
        if self._inflight is not None:
            self._queued = True
            return
        self._launch()

    def _on_invalidated(self) -> None:
        self._generation += 1
        self._queued = False
        self._set_state(ConsumerState.AWAITING_READY)

    def _launch(self) -> None:
        self.fetch_count += 1
        generation = self._generation
        self._inflight = self._lifetime.spawn(self._run(generation), name=f"fetch-{self.label}-{self.fetch_count}")

    async def _run(self, generation: int) -> None:
        try:
            result = await self._fetch()
        except asyncio.CancelledError:
            self._inflight = None
            raise
        except Exception as exc:
            self._settle(generation, None, exc)
        else:
            self._settle(generation, result, None)

    def _settle(self, generation: int, result: Optional[T], exc: Optional[Exception]) -> None:
        self._inflight = None
        if not self._lifetime.alive:
            logger.debug("[%s] fetch settled after teardown, discarded", self.label)
            return

        if generation != self._generation or self._state != ConsumerState.FETCHING:
            logger.debug("[%s] stale fetch discarded", self.label)
            if self._queued and self._state == ConsumerState.FETCHING:
                self._queued = False
                self._launch()
            return

        if exc is None:
            try:
                self._apply(result)
            except Exception as apply_exc:
                exc = apply_exc
            else:
                self._set_state(ConsumerState.READY)
                return

        self.error = str(exc) or exc.__class__.__name__
        self._set_state(ConsumerState.ERROR)
        logger.warning("[%s] fetch failed: %s", self.label, self.error)
        if self._on_failure is not None:
            self._on_failure(exc)

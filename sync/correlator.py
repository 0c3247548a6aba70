"""Task Correlator: routes completion events to the operation that started them."""

from __future__ import annotations

import asyncio
from collections import deque
import logging
from typing import Callable, Deque, Dict, Optional
from uuid import uuid4

from core import TaskCompletion, TaskHandle
from utils.exceptions import ConsumerStateError, TaskFailure, TaskTimeoutError

from .lifetime import ConsumerLifetime


logger = logging.getLogger(__name__)

SuccessCallback = Callable[[TaskCompletion], None]
FailureCallback = Callable[[TaskFailure], None]


class TaskCorrelator:
    """Holds at most one correlation token per operation kind.

    The push channel fans every completion out to every listener, so a
    completion is acted on only when its ``task_id`` equals the token held for
    its kind. Completions that arrive before ``begin`` (the task-start
    acknowledgment can lose the race against the event) are kept in a small
    per-kind backlog and matched when the token is registered.
    """

    def __init__(
        self,
        lifetime: ConsumerLifetime,
        *,
        timeout: Optional[float] = None,
        backlog_size: int = 8,
    ) -> None:
        self._lifetime = lifetime
        self._timeout = timeout if timeout and timeout > 0 else None
        self._backlog_size = max(0, int(backlog_size))
        self._pending: Dict[str, TaskHandle] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._on_success: Dict[str, SuccessCallback] = {}
        self._on_failure: Dict[str, FailureCallback] = {}
        self._backlog: Dict[str, Deque[TaskCompletion]] = {}
        self.dropped = 0

    def register(self, kind: str, on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        self._on_success[kind] = on_success
        self._on_failure[kind] = on_failure

    def pending(self, kind: str) -> Optional[TaskHandle]:
        return self._pending.get(kind)

    def begin(self, kind: str, token: Optional[str] = None, *, timeout: Optional[float] = None) -> TaskHandle:
        """Record a fresh token for ``kind``, abandoning any previous one."""
        if not self._lifetime.alive:
            raise ConsumerStateError(f"cannot begin '{kind}' after teardown")

        previous = self._pending.pop(kind, None)
        if previous is not None:
            self._lifetime.cancel_timer(self._timers.pop(kind, None))
            logger.info("task %s abandoned by a newer '%s' operation", previous.token, kind)

        effective_timeout = timeout if timeout is not None else self._timeout
        handle = TaskHandle(kind=kind, token=str(token or uuid4().hex), timeout=effective_timeout)
        self._pending[kind] = handle
        if effective_timeout:
            timer = self._lifetime.call_later(effective_timeout, lambda: self._expire(handle))
            if timer is not None:
                self._timers[kind] = timer
        logger.debug("task %s begun (%s)", handle.token, kind)

        early = self._take_from_backlog(kind, handle.token)
        if early is not None:
            logger.debug("task %s completed before it was registered", handle.token)
            self._resolve(handle, early)
        return handle

    def on_event(self, completion: TaskCompletion) -> bool:
        """Returns True when the completion resolved the held operation."""
        if not self._lifetime.alive:
            return False

        handle = self._pending.get(completion.kind)
        if handle is None or completion.task_id != handle.token:
            self.dropped += 1
            logger.debug(
                "completion %s (%s) does not match held token %s",
                completion.task_id,
                completion.kind,
                handle.token if handle else None,
            )
            self._remember(completion)
            return False

        self._resolve(handle, completion)
        return True

    def discard(self, kind: Optional[str] = None) -> None:
        """Forget held tokens locally; the backend keeps running the tasks."""
        kinds = [kind] if kind is not None else list(self._pending)
        for item in kinds:
            self._pending.pop(item, None)
            self._lifetime.cancel_timer(self._timers.pop(item, None))

    def _resolve(self, handle: TaskHandle, completion: TaskCompletion) -> None:
        self._pending.pop(handle.kind, None)
        self._lifetime.cancel_timer(self._timers.pop(handle.kind, None))

        if completion.success:
            logger.info("task %s (%s) succeeded", handle.token, handle.kind)
            callback = self._on_success.get(handle.kind)
            if callback is not None:
                callback(completion)
            return

        failure = TaskFailure(
            completion.error or f"{handle.kind} failed",
            task_id=handle.token,
            kind=handle.kind,
        )
        logger.warning("task %s (%s) failed: %s", handle.token, handle.kind, failure.message)
        self._fail(handle.kind, failure)

    def _expire(self, handle: TaskHandle) -> None:
        if self._pending.get(handle.kind) is not handle:
            return
        self._pending.pop(handle.kind, None)
        self._timers.pop(handle.kind, None)
        failure = TaskTimeoutError(
            f"no completion for {handle.kind} within {handle.timeout:g}s",
            task_id=handle.token,
            kind=handle.kind,
        )
        logger.warning("task %s timed out", handle.token)
        self._fail(handle.kind, failure)

    def _fail(self, kind: str, failure: TaskFailure) -> None:
        callback = self._on_failure.get(kind)
        if callback is not None:
            callback(failure)

    def _remember(self, completion: TaskCompletion) -> None:
        if not completion.task_id or not self._backlog_size:
            return
        bucket = self._backlog.setdefault(completion.kind, deque(maxlen=self._backlog_size))
        bucket.append(completion)

    def _take_from_backlog(self, kind: str, token: str) -> Optional[TaskCompletion]:
        bucket = self._backlog.get(kind)
        if not bucket:
            return None
        for item in list(bucket):
            if item.task_id == token:
                bucket.remove(item)
                return item
        return None

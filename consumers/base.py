"""Base surface: owns one channel, one lifetime and the event dispatcher."""

from __future__ import annotations

import logging
from typing import Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from channel import BasePushTransport, Channel, ChannelManager
from core import Event, ReadinessPing, TaskCompletion, UnknownEvent, UnparseableEvent
from sync import ConsumerLifetime
from utils.exceptions import ChannelConnectionError, ConsumerStateError
from utils.notify import LoggingNotifier, Notifier


logger = logging.getLogger(__name__)


class ArtifactConsumer:
    """
    A mounted UI surface that displays a server-produced artifact.

    ``start()`` and ``stop()`` are called once per mount by the owner. All
    channel callbacks and async results go through ``self.lifetime``, so
    nothing is applied after ``stop()``.
    """

    name = "consumer"

    def __init__(
        self,
        transport: BasePushTransport,
        *,
        notifier: Optional[Notifier] = None,
        label: Optional[str] = None,
    ) -> None:
        if label:
            self.name = label
        self.notifier = notifier or LoggingNotifier()
        self.lifetime = ConsumerLifetime(self.name)
        self._channels = ChannelManager(transport)
        self._started = False
        self._stopped = False
        self.connection_error: Optional[str] = None

    @property
    def mounted(self) -> bool:
        return self._started and not self._stopped

    @property
    def channel(self) -> Optional[Channel]:
        return self._channels.channel

    def start(self) -> None:
        if self._started:
            raise ConsumerStateError(f"{self.name} already started")
        self._started = True
        self._open_channel()
        self._on_start()
        logger.debug("%s mounted", self.name)

    def stop(self) -> None:
        if not self._started or self._stopped:
            return
        self._stopped = True
        self.lifetime.cancel()
        self._channels.close()
        self._on_stop()
        logger.debug("%s unmounted", self.name)

    def reconnect(self) -> Channel:
        """Explicitly re-open the channel after it dropped."""
        if not self.mounted:
            raise ConsumerStateError(f"{self.name} is not mounted")
        current = self._channels.channel
        if current is not None and current.is_open:
            return current
        self.connection_error = None
        logger.info("%s re-subscribing", self.name)
        return self._open_channel()

    async def wait_disconnected(self) -> None:
        """Return when unmounted; raise ChannelConnectionError when the channel drops."""
        current = self._channels.channel
        if current is None:
            return
        await current.wait_closed()
        if self.mounted and self.connection_error is not None:
            raise ChannelConnectionError(self.connection_error)

    def _open_channel(self) -> Channel:
        return self._channels.open(
            self.lifetime.guard(self._dispatch),
            self.lifetime.guard(self._on_channel_error),
        )

    def _dispatch(self, event: Event) -> None:
        if isinstance(event, ReadinessPing):
            self.on_readiness(event)
        elif isinstance(event, TaskCompletion):
            self.on_task_completion(event)
        elif isinstance(event, UnknownEvent):
            logger.debug("%s: ignoring '%s' event", self.name, event.name)
        elif isinstance(event, UnparseableEvent):
            logger.warning("%s: dropped malformed '%s' event: %s", self.name, event.name, event.reason)
        else:
            logger.debug("%s: unexpected event %r", self.name, event)

    def _on_channel_error(self, exc: ChannelConnectionError) -> None:
        self.connection_error = exc.message
        self.notifier.error("Connection lost", exc.message)

    # Hooks

    def on_readiness(self, ping: ReadinessPing) -> None:
        pass

    def on_task_completion(self, completion: TaskCompletion) -> None:
        pass

    def _on_start(self) -> None:
        pass

    def _on_stop(self) -> None:
        pass


async def keep_subscribed(
    consumer: ArtifactConsumer,
    *,
    attempts: int,
    max_wait: float = 30.0,
    min_wait: float = 1.0,
) -> None:
    """
    Opt-in re-subscription policy: re-open the channel after each drop with
    exponential backoff, up to ``attempts`` times. Returns when the consumer
    is unmounted; re-raises the last ChannelConnectionError when attempts run
    out.
    """
    if attempts <= 0:
        await consumer.wait_disconnected()
        return

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts + 1),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(ChannelConnectionError),
        reraise=True,
    )
    first = True
    async for attempt in retrying:
        with attempt:
            if not first:
                consumer.reconnect()
            first = False
            await consumer.wait_disconnected()

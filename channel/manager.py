"""Channel Manager: one push connection per mounted consumer."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional
from uuid import uuid4

from core import Event
from utils.exceptions import ChannelConnectionError, ChannelStateError

from .sse import decode_event
from .transport import BasePushTransport


logger = logging.getLogger(__name__)

EventCallback = Callable[[Event], None]
ErrorCallback = Callable[[ChannelConnectionError], None]


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class Channel:
    """An open push connection. Closed on the first transport error, never reopened."""

    def __init__(self, on_event: EventCallback, on_error: ErrorCallback, *, label: str = "") -> None:
        self.channel_id = uuid4().hex[:8]
        self.label = label
        self.is_open = True
        self.error_count = 0
        self._on_event = on_event
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return not self.is_open

    def close(self) -> None:
        """Idempotent. No callback fires after this returns."""
        if not self.is_open:
            return
        self.is_open = False
        self._closed.set()
        task = self._task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        logger.debug("channel %s closed (%s)", self.channel_id, self.label)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def _deliver(self, event: Event) -> None:
        try:
            self._on_event(event)
        except Exception:
            logger.exception("channel %s: event handler failed", self.channel_id)

    def _fail(self, exc: ChannelConnectionError) -> None:
        if not self.is_open:
            return
        self.error_count += 1
        self.is_open = False
        self._closed.set()
        logger.warning("channel %s dropped (%s): %s", self.channel_id, self.label, exc)
        try:
            self._on_error(exc)
        except Exception:
            logger.exception("channel %s: error handler failed", self.channel_id)

    async def _pump(self, transport: BasePushTransport) -> None:
        stream = transport.stream()
        try:
            async for raw in stream:
                if not self.is_open:
                    return
                self._deliver(decode_event(raw))
                if not self.is_open:
                    return
        except ChannelConnectionError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            self._fail(ChannelConnectionError(f"push channel failed: {exc}", url=transport.describe()))
            return
        finally:
            await stream.aclose()

        self._fail(ChannelConnectionError("push channel closed by server", url=transport.describe()))


class ChannelManager:
    """Owns at most one open Channel over a transport."""

    def __init__(self, transport: BasePushTransport) -> None:
        self._transport = transport
        self._channel: Optional[Channel] = None

    @property
    def channel(self) -> Optional[Channel]:
        return self._channel

    @property
    def transport(self) -> BasePushTransport:
        return self._transport

    def open(self, on_event: EventCallback, on_error: ErrorCallback) -> Channel:
        if self._channel is not None and self._channel.is_open:
            raise ChannelStateError(
                "channel already open; close it before opening another",
                {"channel_id": self._channel.channel_id},
            )

        channel = Channel(on_event, on_error, label=self._transport.describe())
        loop = asyncio.get_running_loop()
        channel._task = loop.create_task(channel._pump(self._transport), name=f"push-channel-{channel.channel_id}")
        self._channel = channel
        logger.info("channel %s opened (%s)", channel.channel_id, channel.label)
        return channel

    def close(self, channel: Optional[Channel] = None) -> None:
        target = channel or self._channel
        if target is None:
            return
        target.close()

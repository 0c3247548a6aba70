"""Push transports: the connection a Channel reads raw SSE frames from."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from core import RawEvent
from utils.exceptions import ChannelConnectionError

from .sse import DEFAULT_EVENT, SseDecoder


logger = logging.getLogger(__name__)


class BasePushTransport:
    """One ``stream()`` call is one connection.

    ``stream`` yields raw frames in arrival order, raises
    ``ChannelConnectionError`` on transport failure and returns when the
    server ends the stream.
    """

    name = "base"

    def stream(self) -> AsyncIterator[RawEvent]:
        raise NotImplementedError

    def describe(self) -> str:
        return self.name


class SseTransport(BasePushTransport):
    """``text/event-stream`` over an ``httpx.AsyncClient``."""

    name = "sse"

    def __init__(
        self,
        url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        connect_timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.url = url
        self._client = client
        # Reads block until the server has something to say.
        self._timeout = httpx.Timeout(connect_timeout, read=None)
        self._headers = dict(headers or {})
        self.last_event_id: Optional[str] = None

    def describe(self) -> str:
        return self.url

    async def stream(self) -> AsyncIterator[RawEvent]:
        client = self._client or httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        owns_client = self._client is None
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-store", **self._headers}
        if self.last_event_id:
            headers["Last-Event-ID"] = self.last_event_id

        decoder = SseDecoder()
        try:
            async with client.stream("GET", self.url, headers=headers, timeout=self._timeout) as response:
                if response.status_code >= 400:
                    raise ChannelConnectionError(
                        f"push channel http {response.status_code}",
                        url=self.url,
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    raw = decoder.feed_line(line)
                    if raw is None:
                        continue
                    self.last_event_id = decoder.last_event_id or self.last_event_id
                    yield raw
        except httpx.TimeoutException as exc:
            raise ChannelConnectionError("push channel timeout", url=self.url) from exc
        except httpx.HTTPError as exc:
            raise ChannelConnectionError(f"push channel request failed: {exc}", url=self.url) from exc
        finally:
            if owns_client:
                await client.aclose()


_END = object()


class InMemoryPushTransport(BasePushTransport):
    """Queue-fed transport for tests and in-process embedding.

    Frames pushed while nobody is connected are delivered to the next
    connection.
    """

    name = "memory"

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self.connections = 0
        self.connected = False

    async def stream(self) -> AsyncIterator[RawEvent]:
        queue = self._queue
        self.connections += 1
        self.connected = True
        try:
            while True:
                item = await queue.get()
                try:
                    if item is _END:
                        return
                    if isinstance(item, BaseException):
                        raise item
                    yield item
                finally:
                    queue.task_done()
        finally:
            self.connected = False
            if self._queue is queue:
                self._queue = asyncio.Queue()

    def push(self, event: str = DEFAULT_EVENT, data: Any = "") -> None:
        if not isinstance(data, str):
            data = json.dumps(data, ensure_ascii=False, default=str)
        self._queue.put_nowait(RawEvent(event=event, data=data))

    def push_ready(self, ready: bool = True) -> None:
        self.push(DEFAULT_EVENT, "ready" if ready else "not_ready")

    def push_completion(
        self,
        kind: str,
        task_id: Optional[str],
        success: bool,
        error: Optional[str] = None,
        **fields: Any,
    ) -> None:
        body: Dict[str, Any] = {"task_id": task_id, "success": success, **fields}
        if error is not None:
            body["error"] = error
        self.push(kind, body)

    def fail(self, message: str = "connection reset") -> None:
        self._queue.put_nowait(ChannelConnectionError(message))

    def end(self) -> None:
        self._queue.put_nowait(_END)

    async def join(self) -> None:
        """Wait until every pushed frame has been dispatched by the reader."""
        await self._queue.join()


class InMemoryPushHub:
    """Fans every frame out to all transports it created, like the backend's broadcast."""

    def __init__(self) -> None:
        self.transports: List[InMemoryPushTransport] = []

    def transport(self) -> InMemoryPushTransport:
        transport = InMemoryPushTransport()
        self.transports.append(transport)
        return transport

    def push(self, event: str = DEFAULT_EVENT, data: Any = "") -> None:
        for transport in self.transports:
            transport.push(event, data)

    def push_ready(self, ready: bool = True) -> None:
        for transport in self.transports:
            transport.push_ready(ready)

    def push_completion(
        self,
        kind: str,
        task_id: Optional[str],
        success: bool,
        error: Optional[str] = None,
        **fields: Any,
    ) -> None:
        for transport in self.transports:
            transport.push_completion(kind, task_id, success, error, **fields)

    async def join(self) -> None:
        await asyncio.gather(*(t.join() for t in self.transports if t.connected))

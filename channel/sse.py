"""Server-Sent Events line decoding and event interpretation."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Iterator, List, Optional

from core import Event, RawEvent, ReadinessPing, TaskCompletion, UnknownEvent, UnparseableEvent
from utils.exceptions import EventParseError


logger = logging.getLogger(__name__)

DEFAULT_EVENT = "message"
READY_TOKENS = {"ready", "true", "1", "yes"}


class SseDecoder:
    """Incremental decoder for the ``text/event-stream`` line protocol."""

    def __init__(self) -> None:
        self._event = ""
        self._data: List[str] = []
        self.last_event_id: Optional[str] = None
        self.retry_ms: Optional[int] = None

    def feed_line(self, line: str) -> Optional[RawEvent]:
        """Consume one line (without terminator). Returns an event on a blank line."""
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self.last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self.retry_ms = int(value)
        return None

    def feed(self, lines: Iterable[str]) -> Iterator[RawEvent]:
        for line in lines:
            raw = self.feed_line(line)
            if raw is not None:
                yield raw

    def _dispatch(self) -> Optional[RawEvent]:
        if not self._data:
            self._event = ""
            return None
        raw = RawEvent(
            event=self._event or DEFAULT_EVENT,
            data="\n".join(self._data),
            id=self.last_event_id,
        )
        self._event = ""
        self._data = []
        return raw


def encode_event(event: str, data: Any) -> str:
    """Serialize one frame the way the backend emits it."""
    if isinstance(data, str):
        payload = data
    else:
        payload = json.dumps(data, ensure_ascii=False, default=str)
    lines = [f"data: {part}" for part in payload.split("\n")]
    if event and event != DEFAULT_EVENT:
        lines.insert(0, f"event: {event}")
    return "\n".join(lines) + "\n\n"


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in READY_TOKENS
    return bool(value)


def _parse_json(raw: RawEvent) -> Any:
    try:
        return json.loads(raw.data)
    except ValueError as exc:
        raise EventParseError(f"invalid JSON in '{raw.event}' event", {"error": str(exc)}) from exc


def _decode_readiness(raw: RawEvent) -> Event:
    text = raw.data.strip()
    if not text:
        raise EventParseError("empty readiness message")

    if text[0] in "{[":
        body = _parse_json(raw)
        if not isinstance(body, dict) or "ready" not in body:
            raise EventParseError("readiness payload without 'ready' field")
        return ReadinessPing(ready=_truthy(body["ready"]))

    # The backend only distinguishes "ready" from everything else.
    return ReadinessPing(ready=text.lower() in READY_TOKENS)


def _decode_labeled(raw: RawEvent) -> Event:
    body = _parse_json(raw)
    if not isinstance(body, dict):
        raise EventParseError(f"'{raw.event}' payload is not an object")
    if "success" not in body:
        return UnknownEvent(name=raw.event)

    fields = dict(body)
    return TaskCompletion(
        kind=raw.event,
        task_id=fields.pop("task_id", None),
        success=_truthy(fields.pop("success")),
        error=fields.pop("error", None),
        payload=fields,
    )


def decode_event(raw: RawEvent) -> Event:
    """Map a raw SSE frame onto the event union. Never raises."""
    try:
        if raw.event == DEFAULT_EVENT:
            return _decode_readiness(raw)
        return _decode_labeled(raw)
    except EventParseError as exc:
        logger.debug("unparseable event name=%s reason=%s", raw.event, exc)
        return UnparseableEvent(name=raw.event, raw=raw.data, reason=str(exc))

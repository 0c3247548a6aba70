"""Canonical contracts for push events, consumer state and artifact handles."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConsumerState(str, Enum):
    """Readiness lifecycle of one mounted consumer."""

    IDLE = "idle"
    AWAITING_READY = "awaiting_ready"
    FETCHING = "fetching"
    READY = "ready"
    ERROR = "error"


class ArtifactKind(str, Enum):
    """How a fetched body is interpreted."""

    BINARY = "binary"
    JSON = "json"


class RawEvent(BaseModel):
    """One dispatched SSE frame before interpretation."""

    event: str = "message"
    data: str = ""
    id: Optional[str] = None


class ReadinessPing(BaseModel):
    """Unlabeled channel message: is the server-side artifact currently valid."""

    ready: bool


class TaskCompletion(BaseModel):
    """Labeled completion event of a named background operation."""

    kind: str
    task_id: Optional[str] = None
    success: bool
    error: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("task_id", "error", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class UnknownEvent(BaseModel):
    """Labeled event this subsystem does not act on."""

    name: str


class UnparseableEvent(BaseModel):
    """Malformed payload, delivered instead of raising."""

    name: str
    raw: str
    reason: str


Event = Union[ReadinessPing, TaskCompletion, UnknownEvent, UnparseableEvent]


class ArtifactSource(BaseModel):
    """Where a finished artifact is retrieved from."""

    url: str
    params: Dict[str, str] = Field(default_factory=dict)
    kind: ArtifactKind = ArtifactKind.BINARY

    @field_validator("url", mode="before")
    @classmethod
    def _non_empty_url(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("url is required")
        return text

    @field_validator("params", mode="before")
    @classmethod
    def _stringify_params(cls, value: Any) -> Dict[str, str]:
        return {str(k): str(v) for k, v in dict(value or {}).items()}

    def identity(self) -> Tuple[str, Tuple[Tuple[str, str], ...]]:
        """Hashable key used to collapse concurrent requests for the same source."""
        return self.url, tuple(sorted(self.params.items()))


@dataclass
class Artifact:
    """Retrieved body of a finished server-side job."""

    source: ArtifactSource
    content: bytes
    media_type: str = ""
    fetched_at: datetime = field(default_factory=_utcnow)

    def json(self) -> Any:
        return json.loads(self.content.decode("utf-8"))


@dataclass
class TaskHandle:
    """Correlation token held for one in-flight background operation."""

    kind: str
    token: str
    started_at: datetime = field(default_factory=_utcnow)
    timeout: Optional[float] = None


@dataclass
class ResourceHandle:
    """Locally addressable, revocable reference to a fetched binary payload."""

    kind: str
    path: Path
    size: int
    created_at: datetime = field(default_factory=_utcnow)
    released: bool = False

    @property
    def uri(self) -> str:
        return self.path.resolve().as_uri()

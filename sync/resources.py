"""Resource Lifecycle Manager: materializes fetched payloads as revocable local handles."""

from __future__ import annotations

import logging
import os
from pathlib import Path
import tempfile
from typing import Optional
from uuid import uuid4

from core import ResourceHandle
from utils.exceptions import ResourceClosedError, ResourceError


logger = logging.getLogger(__name__)

_SUFFIXES = {"pdf": ".pdf", "tex": ".tex"}


class BaseResourceStore:
    """Creates and releases handles. ``release`` is called at most once per handle."""

    def create(self, payload: bytes, kind: str) -> ResourceHandle:
        raise NotImplementedError

    def release(self, handle: ResourceHandle) -> None:
        raise NotImplementedError


class TempFileResourceStore(BaseResourceStore):
    """One file per handle; release unlinks it."""

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory) if directory else Path(tempfile.gettempdir()) / "artifact-sync"
        self.directory.mkdir(parents=True, exist_ok=True)

    def create(self, payload: bytes, kind: str) -> ResourceHandle:
        target = self.directory / f"{kind}-{uuid4().hex}{_SUFFIXES.get(kind, '.bin')}"
        tmp = target.parent / f".{target.name}.tmp"
        try:
            tmp.write_bytes(payload)
            os.replace(tmp, target)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise ResourceError(f"could not materialize {kind} payload: {exc}") from exc
        return ResourceHandle(kind=kind, path=target, size=len(payload))

    def release(self, handle: ResourceHandle) -> None:
        handle.path.unlink(missing_ok=True)


class ResourceLifecycleManager:
    """Holds at most one valid handle of one kind.

    Swap order: the new handle is created first and the previous one is
    released only after that succeeded, so a consumer never holds zero valid
    handles mid-swap and never releases one twice.
    """

    def __init__(self, store: BaseResourceStore, kind: str) -> None:
        self._store = store
        self.kind = kind
        self._current: Optional[ResourceHandle] = None
        self._closed = False
        self.release_count = 0

    @property
    def current(self) -> Optional[ResourceHandle]:
        return self._current

    @property
    def closed(self) -> bool:
        return self._closed

    def adopt(self, payload: bytes) -> ResourceHandle:
        if self._closed:
            raise ResourceClosedError(f"{self.kind} resources already released")

        handle = self._store.create(payload, self.kind)
        previous, self._current = self._current, handle
        if previous is not None:
            self._release(previous)
        logger.debug("adopted %s handle %s (%d bytes)", self.kind, handle.uri, handle.size)
        return handle

    def close(self) -> None:
        """Release the held handle once; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        current, self._current = self._current, None
        if current is not None:
            self._release(current)

    def _release(self, handle: ResourceHandle) -> None:
        if handle.released:
            return
        handle.released = True
        self.release_count += 1
        try:
            self._store.release(handle)
        except OSError as exc:
            logger.warning("could not release %s: %s", handle.uri, exc)

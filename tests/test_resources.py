from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from core import ResourceHandle
from sync import BaseResourceStore, ResourceLifecycleManager, TempFileResourceStore
from utils.exceptions import ResourceClosedError


class RecordingStore(BaseResourceStore):
    def __init__(self) -> None:
        self.log: List[str] = []
        self._next = 0

    def create(self, payload: bytes, kind: str) -> ResourceHandle:
        self._next += 1
        name = f"{kind}-{self._next}"
        self.log.append(f"create:{name}")
        return ResourceHandle(kind=kind, path=Path(name), size=len(payload))

    def release(self, handle: ResourceHandle) -> None:
        self.log.append(f"release:{handle.path.name}")


def test_new_handle_is_created_before_previous_is_released() -> None:
    store = RecordingStore()
    manager = ResourceLifecycleManager(store, "pdf")

    first = manager.adopt(b"v1")
    second = manager.adopt(b"v2")

    assert store.log == ["create:pdf-1", "create:pdf-2", "release:pdf-1"]
    assert manager.current is second
    assert first.released is True
    assert second.released is False


def test_close_releases_current_exactly_once() -> None:
    store = RecordingStore()
    manager = ResourceLifecycleManager(store, "pdf")
    manager.adopt(b"v1")
    manager.adopt(b"v2")

    manager.close()
    manager.close()

    assert store.log.count("release:pdf-1") == 1
    assert store.log.count("release:pdf-2") == 1
    assert manager.release_count == 2
    assert manager.current is None

    with pytest.raises(ResourceClosedError):
        manager.adopt(b"v3")


def test_failed_create_keeps_the_previous_handle() -> None:
    class FlakyStore(RecordingStore):
        def create(self, payload: bytes, kind: str) -> ResourceHandle:
            if payload == b"bad":
                raise OSError("disk full")
            return super().create(payload, kind)

    store = FlakyStore()
    manager = ResourceLifecycleManager(store, "pdf")
    first = manager.adopt(b"v1")

    with pytest.raises(OSError):
        manager.adopt(b"bad")

    assert manager.current is first
    assert first.released is False


def test_temp_file_store_materializes_and_unlinks(tmp_path: Path) -> None:
    store = TempFileResourceStore(tmp_path / "handles")
    manager = ResourceLifecycleManager(store, "pdf")

    first = manager.adopt(b"%PDF-one")
    assert first.path.read_bytes() == b"%PDF-one"
    assert first.path.suffix == ".pdf"
    assert first.uri.startswith("file://")

    second = manager.adopt(b"%PDF-two")
    assert not first.path.exists()
    assert second.path.exists()

    manager.close()
    assert not second.path.exists()
    assert list((tmp_path / "handles").iterdir()) == []

"""
Cache
短期结果缓存模块
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
import time
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4


logger = logging.getLogger(__name__)

Clock = Callable[[], float]

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass
class CacheEntry:
    key: str
    payload: Any
    timestamp: float


class BaseResultCache(ABC):
    """
    时间限定的结果缓存

    Entries are served only while ``now - timestamp < ttl``; expiry is
    checked on read.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Optional[Clock] = None):
        """
        Args:
            ttl: 过期时间 (秒)
            clock: 时间源, 默认 time.time
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = float(ttl)
        self._clock = clock or time.time

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Fresh payload or None"""
        pass

    @abstractmethod
    def put(self, key: str, payload: Any) -> None:
        """Store payload with a fresh timestamp, replacing any previous entry"""
        pass

    @abstractmethod
    def invalidate(self, key: str) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl

    def _new_entry(self, key: str, payload: Any) -> CacheEntry:
        if payload is None:
            raise ValueError("None cannot be cached; it means absent")
        return CacheEntry(key=key, payload=payload, timestamp=self._clock())

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        获取缓存，不存在则通过 loader 加载并写入

        Args:
            key: 缓存键
            loader: 异步加载函数
        """
        value = self.get(key)
        if value is not None:
            return value
        value = await loader()
        if value is not None:
            self.put(key, value)
        return value


class EphemeralResultCache(BaseResultCache):
    """
    内存缓存
    Process-local, survives consumer unmounts.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Optional[Clock] = None, max_size: int = 256):
        super().__init__(ttl, clock)
        self.max_size = max_size
        self._entries: Dict[str, CacheEntry] = {}

    def _cleanup(self) -> None:
        """清理过期条目"""
        expired = [k for k, v in self._entries.items() if not self._is_fresh(v)]
        for key in expired:
            del self._entries[key]

        # 如果仍然超过限制，删除最旧的
        if len(self._entries) >= self.max_size:
            oldest = sorted(self._entries, key=lambda k: self._entries[k].timestamp)
            for key in oldest[: len(self._entries) - self.max_size + 1]:
                del self._entries[key]

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self._is_fresh(entry):
            del self._entries[key]
            return None
        return entry.payload

    def put(self, key: str, payload: Any) -> None:
        entry = self._new_entry(key, payload)
        self._entries.pop(key, None)
        self._cleanup()
        self._entries[key] = entry

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        return len(self._entries)


class JsonFileResultCache(BaseResultCache):
    """
    磁盘缓存
    JSON file shared by every process of one user session.
    """

    def __init__(self, path: str, ttl: float = DEFAULT_TTL_SECONDS, clock: Optional[Clock] = None):
        super().__init__(ttl, clock)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load cache file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        tmp = self.path.parent / f".{self.path.name}.{uuid4().hex}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, default=str)
            os.replace(tmp, self.path)
        finally:
            if tmp.exists():
                tmp.unlink()

    def get(self, key: str) -> Optional[Any]:
        raw = self._load().get(key)
        if not isinstance(raw, dict):
            return None
        try:
            timestamp = float(raw["timestamp"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed cache entry '{key}' in {self.path}")
            return None
        entry = CacheEntry(key=key, payload=raw.get("payload"), timestamp=timestamp)
        if not self._is_fresh(entry):
            return None
        return entry.payload

    def put(self, key: str, payload: Any) -> None:
        entry = self._new_entry(key, payload)
        data = self._load()
        data[key] = {"payload": entry.payload, "timestamp": entry.timestamp}
        self._save(data)

    def invalidate(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def get_result_cache(ttl: float = DEFAULT_TTL_SECONDS, path: Optional[str] = None) -> BaseResultCache:
    """
    获取缓存实例

    Args:
        ttl: 过期时间
        path: JSON 文件路径; 为空时使用内存缓存
    """
    if path:
        return JsonFileResultCache(path, ttl=ttl)
    return EphemeralResultCache(ttl=ttl)

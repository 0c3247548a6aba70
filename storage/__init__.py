"""
Storage Module
存储模块 - 短期结果缓存
"""
from .cache import (
    BaseResultCache,
    CacheEntry,
    EphemeralResultCache,
    JsonFileResultCache,
    get_result_cache,
)

__all__ = [
    "BaseResultCache",
    "CacheEntry",
    "EphemeralResultCache",
    "JsonFileResultCache",
    "get_result_cache",
]

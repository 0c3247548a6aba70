"""
Configuration Management Module
统一配置管理
"""
from .settings import (
    BackendSettings,
    Settings,
    get_settings,
    get_backend_settings,
)

__all__ = [
    "BackendSettings",
    "Settings",
    "get_settings",
    "get_backend_settings",
]

"""
Utils Module
通用工具函数
"""
from .logger import setup_logger, setup_package_logging, get_logger
from .exceptions import (
    ArtifactSyncError,
    ChannelConnectionError,
    ChannelStateError,
    ConfigurationError,
    ConsumerStateError,
    EventParseError,
    FetchError,
    NetworkFetchError,
    ResourceClosedError,
    ResourceError,
    StatusFetchError,
    TaskFailure,
    TaskTimeoutError,
)
from .notify import ConsoleNotifier, LoggingNotifier, Notification, Notifier, RecordingNotifier

__all__ = [
    "setup_logger",
    "setup_package_logging",
    "get_logger",
    "ArtifactSyncError",
    "ChannelConnectionError",
    "ChannelStateError",
    "ConfigurationError",
    "ConsumerStateError",
    "EventParseError",
    "FetchError",
    "NetworkFetchError",
    "ResourceClosedError",
    "ResourceError",
    "StatusFetchError",
    "TaskFailure",
    "TaskTimeoutError",
    "ConsoleNotifier",
    "LoggingNotifier",
    "Notification",
    "Notifier",
    "RecordingNotifier",
]

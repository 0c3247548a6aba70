"""
Custom Exceptions
自定义异常类
"""
from typing import Optional


class ArtifactSyncError(Exception):
    """Base error for the artifact synchronization subsystem"""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ArtifactSyncError):
    """配置错误"""
    pass


class ChannelConnectionError(ArtifactSyncError):
    """Push channel failed to open or dropped"""

    def __init__(self, message: str, url: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.url = url


class ChannelStateError(ArtifactSyncError):
    """Channel opened twice by the same owner"""
    pass


class FetchError(ArtifactSyncError):
    """Artifact retrieval failed"""

    def __init__(self, message: str, url: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.url = url


class NetworkFetchError(FetchError):
    """Transport failure or timeout"""
    pass


class StatusFetchError(FetchError):
    """Non-success HTTP status"""

    def __init__(self, message: str, status_code: int, url: str = None, **kwargs):
        super().__init__(message, url=url, **kwargs)
        self.status_code = status_code


class TaskFailure(ArtifactSyncError):
    """Backend reported that a background operation failed"""

    def __init__(self, message: str, task_id: Optional[str] = None, kind: Optional[str] = None, **kwargs):
        super().__init__(message, kwargs)
        self.task_id = task_id
        self.kind = kind


class TaskTimeoutError(TaskFailure):
    """No completion event arrived before the deadline"""
    pass


class EventParseError(ArtifactSyncError):
    """Malformed push event payload"""
    pass


class ResourceError(ArtifactSyncError):
    """Local resource handle error"""
    pass


class ResourceClosedError(ResourceError):
    """Resource manager already torn down"""
    pass


class ConsumerStateError(ArtifactSyncError):
    """Consumer lifecycle misuse (start twice, act after stop)"""
    pass

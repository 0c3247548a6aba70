"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from utils.exceptions import ConfigurationError


class BackendSettings(BaseSettings):
    """Backend endpoints and HTTP timeouts"""
    base_url: str = Field(default="http://localhost:8000", description="Backend base URL")
    events_path: str = Field(default="/api/events", description="SSE push channel path")
    request_timeout: float = Field(default=30.0, description="Request timeout (seconds)")
    connect_timeout: float = Field(default=10.0, description="Connect timeout (seconds)")

    class Config:
        env_prefix = "BACKEND_"

    @property
    def events_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.events_path.lstrip('/')}"


class CacheSettings(BaseSettings):
    """Ephemeral result cache"""
    ttl_seconds: float = Field(default=300.0, description="Entry lifetime (seconds)")
    path: Optional[str] = Field(default=None, description="JSON file for a persistent cache (optional)")

    class Config:
        env_prefix = "CACHE_"


class TaskSettings(BaseSettings):
    """Background task correlation"""
    completion_timeout: float = Field(default=300.0, description="Seconds to wait for a completion event, 0 = no limit")
    backlog_size: int = Field(default=8, description="Unmatched completions kept per kind")

    class Config:
        env_prefix = "TASK_"


class ResourceSettings(BaseSettings):
    """Materialized artifact handles"""
    dir: Optional[str] = Field(default=None, description="Directory for materialized files (default: system temp)")

    class Config:
        env_prefix = "RESOURCE_"


class ResubscribeSettings(BaseSettings):
    """Opt-in channel re-subscription after a dropped connection"""
    attempts: int = Field(default=0, description="Re-open attempts, 0 = never re-open")
    max_wait: float = Field(default=30.0, description="Upper bound of the backoff (seconds)")

    class Config:
        env_prefix = "RESUBSCRIBE_"


class LoggingSettings(BaseSettings):
    """Log output"""
    level: str = Field(default="INFO", description="Package log level")
    file: Optional[str] = Field(default=None, description="Log file, relative paths go to logs/")
    rich: bool = Field(default=True, description="Use the rich console handler")

    class Config:
        env_prefix = "LOG_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    backend: BackendSettings = Field(default_factory=BackendSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    task: TaskSettings = Field(default_factory=TaskSettings)
    resource: ResourceSettings = Field(default_factory=ResourceSettings)
    resubscribe: ResubscribeSettings = Field(default_factory=ResubscribeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        try:
            return cls(
                backend=BackendSettings(),
                cache=CacheSettings(),
                task=TaskSettings(),
                resource=ResourceSettings(),
                resubscribe=ResubscribeSettings(),
                logging=LoggingSettings(),
            )
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid configuration",
                {"errors": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]},
            ) from e


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


def get_backend_settings() -> BackendSettings:
    return get_settings().backend

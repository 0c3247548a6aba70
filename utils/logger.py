"""
Logger Configuration
统一日志配置
"""
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Union

from rich.console import Console
from rich.logging import RichHandler


# 全局 Console 实例 (日志与通知共用)
console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

ROOT_LOGGER_NAME = "artifact_sync"

# 本项目的顶层包
PACKAGE_LOGGERS = ("channel", "sync", "consumers", "storage", "api", ROOT_LOGGER_NAME)

# httpx logs every request at INFO, including each SSE reconnect
NOISY_LOGGERS = ("httpx", "httpcore")


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _console_handler(level: int, use_rich: bool) -> logging.Handler:
    if use_rich:
        handler: logging.Handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    return handler


def _file_handler(log_file: str, level: int) -> logging.Handler:
    path = Path(log_file)
    if not path.is_absolute():
        path = LOG_DIR / path
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    return handler


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    设置日志记录器

    Args:
        name: 日志记录器名称
        level: 日志级别 (int 或 "DEBUG" 等名称)
        log_file: 日志文件 (相对路径写入 logs/)
        use_rich: 是否使用 Rich 输出

    Returns:
        配置好的 Logger 实例
    """
    level = _coerce_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 已配置过则只调整级别
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    logger.addHandler(_console_handler(level, use_rich))
    if log_file:
        logger.addHandler(_file_handler(log_file, level))
    logger.propagate = False
    return logger


def setup_package_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
    packages: Iterable[str] = PACKAGE_LOGGERS,
    http_level: Union[int, str] = logging.WARNING,
) -> None:
    """Configure every package logger of this project and quiet the HTTP stack."""
    for name in packages:
        setup_logger(name, level=level, log_file=log_file, use_rich=use_rich)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(_coerce_level(http_level))


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """获取日志记录器, 未配置时使用默认配置"""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger

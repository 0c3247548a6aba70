from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from utils import logger as log_module
from utils.logger import get_logger, setup_logger, setup_package_logging


def _reset(name: str) -> None:
    target = logging.getLogger(name)
    for handler in list(target.handlers):
        target.removeHandler(handler)
        handler.close()
    target.propagate = True


def test_setup_logger_is_idempotent_and_accepts_level_names() -> None:
    name = "artifact_sync.test_idempotent"
    try:
        first = setup_logger(name, level="debug")
        second = setup_logger(name, level=logging.WARNING)

        assert first is second
        assert len(first.handlers) == 1
        assert isinstance(first.handlers[0], RichHandler)
        assert first.level == logging.WARNING
        assert first.handlers[0].level == logging.WARNING
    finally:
        _reset(name)


def test_relative_log_file_goes_to_log_dir(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(log_module, "LOG_DIR", tmp_path)
    name = "artifact_sync.test_file"
    try:
        logger = setup_logger(name, log_file="sync.log", use_rich=False)
        logger.info("fetched %s", "resume.pdf")
        for handler in logger.handlers:
            handler.flush()

        assert "fetched resume.pdf" in (tmp_path / "sync.log").read_text(encoding="utf-8")
    finally:
        _reset(name)


def test_package_logging_quiets_http_stack() -> None:
    packages = ("artifact_sync.test_pkg_a", "artifact_sync.test_pkg_b")
    try:
        setup_package_logging(level="INFO", use_rich=False, packages=packages)

        assert all(logging.getLogger(name).handlers for name in packages)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for name in packages:
            _reset(name)


def test_get_logger_configures_on_first_use() -> None:
    name = "artifact_sync.test_get"
    try:
        assert get_logger(name).handlers
    finally:
        _reset(name)

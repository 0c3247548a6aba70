from __future__ import annotations

import os
from pathlib import Path

import pytest

from config import get_settings
from config.settings import BackendSettings, Settings, TaskSettings
from utils.exceptions import ConfigurationError


def test_defaults() -> None:
    settings = Settings.load_from_env_file(Path("/nonexistent/.env"))

    assert settings.backend.events_url == "http://localhost:8000/api/events"
    assert settings.cache.ttl_seconds == 300
    assert settings.cache.path is None
    assert settings.task.completion_timeout == 300
    assert settings.resubscribe.attempts == 0
    assert settings.logging.level == "INFO"
    assert settings.logging.file is None


def test_env_prefixes_override(monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_BASE_URL", "http://resume.internal:9000/")
    monkeypatch.setenv("TASK_COMPLETION_TIMEOUT", "12.5")
    monkeypatch.setenv("RESUBSCRIBE_ATTEMPTS", "3")

    settings = Settings.load_from_env_file(Path("/nonexistent/.env"))

    assert settings.backend.events_url == "http://resume.internal:9000/api/events"
    assert settings.task.completion_timeout == 12.5
    assert settings.resubscribe.attempts == 3


def test_env_file_is_loaded(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("CACHE_TTL_SECONDS", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("CACHE_TTL_SECONDS=60\n", encoding="utf-8")

    try:
        settings = Settings.load_from_env_file(env_file)
        assert settings.cache.ttl_seconds == 60
    finally:
        os.environ.pop("CACHE_TTL_SECONDS", None)


def test_invalid_values_raise_configuration_error(monkeypatch) -> None:
    monkeypatch.setenv("TASK_BACKLOG_SIZE", "many")

    with pytest.raises(ConfigurationError) as exc_info:
        Settings.load_from_env_file(Path("/nonexistent/.env"))

    assert any(err.startswith("backlog_size") for err in exc_info.value.details["errors"])


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()


def test_groups_are_independent() -> None:
    assert BackendSettings(events_path="stream").events_url == "http://localhost:8000/stream"
    assert TaskSettings(backlog_size=2).backlog_size == 2

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from icalsched import SchedulerConfig, configure_logging
from icalsched._config import KEY_PREFIX

_ENV = (
    "ICALSCHED_REPLACE_EXISTING",
    "ICALSCHED_COALESCE",
    "ICALSCHED_KEY_PREFIX",
    "ICALSCHED_DEBUG",
    "ICALSCHED_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def package_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger("icalsched")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestSchedulerConfig:
    def test_defaults(self) -> None:
        config = SchedulerConfig.from_env()
        assert config == SchedulerConfig()
        assert config.replace_existing is True
        assert config.coalesce is True
        assert config.key_prefix == KEY_PREFIX == "__ICal__"

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ICALSCHED_REPLACE_EXISTING", "no")
        monkeypatch.setenv("ICALSCHED_COALESCE", "0")
        monkeypatch.setenv("ICALSCHED_KEY_PREFIX", "jobs")
        assert SchedulerConfig.from_env() == SchedulerConfig(replace_existing=False, coalesce=False, key_prefix="jobs")

    def test_invalid_flag_falls_back_to_default(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setenv("ICALSCHED_COALESCE", "sometimes")
        with caplog.at_level(logging.WARNING, logger="icalsched"):
            assert SchedulerConfig.from_env().coalesce is True
        assert "ICALSCHED_COALESCE" in caplog.text


class TestConfigureLogging:
    def test_default_level_is_info(self, package_logger: logging.Logger) -> None:
        configure_logging()
        assert package_logger.level == logging.INFO
        assert package_logger.handlers

    def test_debug_mode(self, package_logger: logging.Logger) -> None:
        configure_logging(debug_mode=True)
        assert package_logger.level == logging.DEBUG

    def test_env_debug_and_force_override(
        self, package_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ICALSCHED_DEBUG", "true")
        configure_logging()
        assert package_logger.level == logging.DEBUG
        configure_logging(force_debug=False)
        assert package_logger.level == logging.INFO

    def test_env_log_level_wins(self, package_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ICALSCHED_LOG_LEVEL", "warning")
        configure_logging(debug_mode=True)
        assert package_logger.level == logging.WARNING

    def test_handler_added_once(self, package_logger: logging.Logger) -> None:
        package_logger.handlers.clear()
        configure_logging()
        configure_logging()
        assert len(package_logger.handlers) == 1

"""Tests for settings and logging setup."""

import logging

import pytest
from pydantic import ValidationError

from threatsmanager.config import Settings, get_settings
from threatsmanager.logging_config import get_logger, setup_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.log_level == "WARNING"
        assert settings.model_file_name == "threat-model.yaml"
        assert settings.default_owner is None
        assert settings.standard_catalogs is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("THREATSMANAGER_LOG_LEVEL", "debug")
        monkeypatch.setenv("THREATSMANAGER_DEFAULT_OWNER", "AppSec")
        get_settings.cache_clear()

        settings = get_settings()

        assert settings.log_level == "DEBUG"
        assert settings.default_owner == "AppSec"

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD", _env_file=None)

    def test_blank_model_file_name(self):
        with pytest.raises(ValidationError):
            Settings(model_file_name="  ", _env_file=None)


class TestLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_setup_logging(self):
        setup_logging(Settings(log_level="ERROR", _env_file=None))
        assert logging.getLogger().level == logging.ERROR

    def test_get_logger(self):
        logger = get_logger("threatsmanager.test", Settings(log_level="INFO", _env_file=None))
        assert logger.level == logging.INFO

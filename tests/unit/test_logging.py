"""
Unit tests for the logging manager.
"""

import logging

import pytest

from discord_multihost.infrastructure.logging_manager import Environment, LoggingManager


class TestLoggingManager:
    """Test cases for LoggingManager."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value,expected,level",
        [
            ("production", Environment.PRODUCTION, "WARNING"),
            ("staging", Environment.STAGING, "INFO"),
            ("development", Environment.DEVELOPMENT, "DEBUG"),
            ("anything", Environment.DEVELOPMENT, "DEBUG"),
        ],
    )
    def test_environment_detection(self, monkeypatch, value, expected, level):
        monkeypatch.setenv("ENVIRONMENT", value)

        manager = LoggingManager()

        assert manager.get_environment() == expected
        assert manager.environment_log_level() == level

    @pytest.mark.unit
    def test_fallback_without_yaml(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ENVIRONMENT", "development")
        log_file = tmp_path / "logs" / "test_component.log"
        manager = LoggingManager(config_path=tmp_path / "missing.yaml")

        logger = manager.setup_logging("test_component", "INFO", str(log_file))
        logger.info("hello")

        assert logger.level == logging.INFO
        assert log_file.exists()
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    @pytest.mark.unit
    def test_yaml_config_applies_environment_level(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.chdir(tmp_path)
        config_path = tmp_path / "logging.yaml"
        config_path.write_text(
            "version: 1\n"
            "disable_existing_loggers: false\n"
            "handlers:\n"
            "  console:\n"
            "    class: logging.StreamHandler\n"
            "loggers:\n"
            "  yaml_component:\n"
            "    level: DEBUG\n"
            "    handlers: [console]\n"
            "    propagate: false\n"
        )

        logger = LoggingManager(config_path=config_path).setup_logging("yaml_component")

        assert logger.level == logging.WARNING
        assert logging.getLogger("discord.gateway").level == logging.WARNING

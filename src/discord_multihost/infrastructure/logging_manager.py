"""
Logging management for the Discord MultiHost coordinator.

Log levels follow the deployment environment read from ``ENVIRONMENT``:
- Development: DEBUG and above
- Staging: INFO and above
- Production: WARNING and above

The handler layout lives in ``logging.yaml`` next to the package. When the
file is missing or unreadable a console (and optional file) handler is
configured instead.
"""

import logging
import logging.config
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Third-party loggers that stay at WARNING regardless of environment
NOISY_LOGGERS = (
    "discord.client",
    "discord.gateway",
    "discord.http",
    "discord.voice_state",
    "discord.voice_client",
    "uvicorn.access",
)


class Environment(Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LoggingManager:
    """Applies the YAML logging configuration with per-environment levels."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: Path to the YAML configuration. Defaults to the
                ``logging.yaml`` shipped with the package.
        """
        if config_path is None:
            config_path = Path(__file__).parent.parent / "logging.yaml"

        self.config_path = config_path
        self._config_cache: Optional[Dict[str, Any]] = None
        self._environment = self._detect_environment()

    def _detect_environment(self) -> Environment:
        env = os.getenv("ENVIRONMENT", "development").lower()

        if env in ("prod", "production"):
            return Environment.PRODUCTION
        if env in ("stage", "staging"):
            return Environment.STAGING
        return Environment.DEVELOPMENT

    def _load_yaml_config(self) -> Optional[Dict[str, Any]]:
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_path.exists():
            return None

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            logging.getLogger(__name__).warning(
                f"Failed to load YAML logging config {self.config_path}: {e}"
            )
            return None

        self._config_cache = config
        return config

    def environment_log_level(self) -> str:
        """Default level for the detected environment."""
        if self._environment == Environment.PRODUCTION:
            return "WARNING"
        if self._environment == Environment.STAGING:
            return "INFO"
        return "DEBUG"

    def _apply_environment_levels(self, config: Dict[str, Any]) -> Dict[str, Any]:
        if self._environment == Environment.DEVELOPMENT:
            return config

        level = self.environment_log_level()
        config = dict(config)
        if "root" in config:
            config["root"] = dict(config["root"], level=level)

        loggers = {}
        for name, logger_config in config.get("loggers", {}).items():
            if name in NOISY_LOGGERS:
                loggers[name] = logger_config
            else:
                loggers[name] = dict(logger_config, level=level)
        config["loggers"] = loggers
        return config

    def setup_logging(
        self,
        component_name: str,
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> logging.Logger:
        """
        Configure logging and return the logger for a component.

        Args:
            component_name: Logger name, e.g. ``session_manager``
            log_level: Explicit level overriding the environment default
            log_file: File used by the fallback configuration

        Returns:
            logging.Logger: Configured logger
        """
        level = (log_level or self.environment_log_level()).upper()
        config = self._load_yaml_config()

        if config:
            os.makedirs("logs", exist_ok=True)
            logging.config.dictConfig(self._apply_environment_levels(config))
            logger = logging.getLogger(component_name)
            logger.setLevel(getattr(logging, level))
        else:
            logger = self._setup_basic_logging(component_name, level, log_file)

        self._suppress_noisy_loggers()
        return logger

    def _setup_basic_logging(
        self, component_name: str, level: str, log_file: Optional[str]
    ) -> logging.Logger:
        logger = logging.getLogger(component_name)
        logger.setLevel(getattr(logging, level))
        logger.handlers.clear()

        if self._environment == Environment.PRODUCTION:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        formatter = logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S")

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if log_file:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        return logger

    def _suppress_noisy_loggers(self) -> None:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    def get_environment(self) -> Environment:
        return self._environment

    def is_production(self) -> bool:
        return self._environment == Environment.PRODUCTION

    def reload_config(self) -> None:
        """Drop the cached YAML so the next setup re-reads it."""
        self._config_cache = None


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Set up logging for a component (convenience function)."""
    return _logging_manager.setup_logging(component_name, log_level, log_file)


def get_logger(component_name: str) -> logging.Logger:
    """Get a logger for a component without reconfiguring handlers."""
    return logging.getLogger(component_name)


def is_production() -> bool:
    return _logging_manager.is_production()


def get_environment() -> Environment:
    return _logging_manager.get_environment()

"""
Configuration management for the Discord MultiHost coordinator.

Values come from environment variables, optionally loaded from a ``.env``
file with python-dotenv.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from discord_multihost.core.types import (
    DEFAULT_API_HOST,
    DEFAULT_API_PORT,
    DEFAULT_JOIN_TIMEOUT_SECONDS,
    DEFAULT_LOCK_SECONDS,
    DEFAULT_NOTIFICATION_QUEUE_SIZE,
)
from discord_multihost.infrastructure.exceptions import ConfigurationError, TokenError

logger = logging.getLogger(__name__)


@dataclass
class MultiHostConfig:
    """Runtime configuration for the coordinator, adapter and control API."""

    # Required to connect to Discord; the core itself runs without it
    bot_token: Optional[str] = None

    # Control API
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT

    # Bounded wait for the platform to become ready and join the channel
    join_timeout_seconds: float = DEFAULT_JOIN_TIMEOUT_SECONDS

    # Default policy for new sessions
    participant_lock_seconds: int = DEFAULT_LOCK_SECONDS
    auto_mute_on_join: bool = False
    auto_deafen_on_join: bool = False

    # Per-subscriber buffer for notification streams
    notification_queue_size: int = DEFAULT_NOTIFICATION_QUEUE_SIZE

    log_level: str = "INFO"

    def __post_init__(self):
        if self.join_timeout_seconds <= 0:
            raise ConfigurationError("JOIN_TIMEOUT_SECONDS must be positive")
        if self.participant_lock_seconds <= 0:
            raise ConfigurationError("PARTICIPANT_LOCK_SECONDS must be positive")
        if self.notification_queue_size <= 0:
            raise ConfigurationError("NOTIFICATION_QUEUE_SIZE must be positive")

    def require_token(self) -> str:
        """
        Return the bot token or fail.

        Raises:
            TokenError: If DISCORD_BOT_TOKEN is not configured
        """
        if not self.bot_token:
            raise TokenError("Required environment variable DISCORD_BOT_TOKEN is not set")
        return self.bot_token


class ConfigManager:
    """Loads :class:`MultiHostConfig` from the environment."""

    def __init__(self, env_file_path: str = ".env"):
        """
        Args:
            env_file_path: Path to environment file
        """
        self.env_file_path = env_file_path
        self._load_environment()

    def _load_environment(self):
        if os.path.exists(self.env_file_path):
            load_dotenv(dotenv_path=self.env_file_path)
            logger.info(f"Loaded environment from {self.env_file_path}")
        else:
            logger.debug(f"Environment file {self.env_file_path} not found")

    def _get_optional_env(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return os.getenv(key, default)

    def _get_int(self, key: str, default: int) -> int:
        raw = self._get_optional_env(key)
        if raw is None or raw == "":
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got '{raw}'")

    def _get_float(self, key: str, default: float) -> float:
        raw = self._get_optional_env(key)
        if raw is None or raw == "":
            return default
        try:
            return float(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be a number, got '{raw}'")

    def _get_bool(self, key: str, default: bool) -> bool:
        raw = self._get_optional_env(key)
        if raw is None or raw == "":
            return default
        return raw.strip().lower() in ("1", "true", "yes", "on")

    def get_config(self) -> MultiHostConfig:
        """
        Build the configuration from the current environment.

        Returns:
            MultiHostConfig: Coordinator configuration

        Raises:
            ConfigurationError: If a value cannot be parsed or is out of range
        """
        try:
            config = MultiHostConfig(
                bot_token=self._get_optional_env("DISCORD_BOT_TOKEN"),
                api_host=self._get_optional_env("API_HOST", DEFAULT_API_HOST),
                api_port=self._get_int("API_PORT", DEFAULT_API_PORT),
                join_timeout_seconds=self._get_float("JOIN_TIMEOUT_SECONDS", DEFAULT_JOIN_TIMEOUT_SECONDS),
                participant_lock_seconds=self._get_int("PARTICIPANT_LOCK_SECONDS", DEFAULT_LOCK_SECONDS),
                auto_mute_on_join=self._get_bool("AUTO_MUTE_ON_JOIN", False),
                auto_deafen_on_join=self._get_bool("AUTO_DEAFEN_ON_JOIN", False),
                notification_queue_size=self._get_int("NOTIFICATION_QUEUE_SIZE", DEFAULT_NOTIFICATION_QUEUE_SIZE),
                log_level=self._get_optional_env("LOG_LEVEL", "INFO"),
            )
        except ConfigurationError as e:
            logger.error(f"Failed to load configuration: {e}")
            raise

        logger.info("Configuration loaded successfully")
        return config


# Global configuration manager instance
config_manager = ConfigManager()

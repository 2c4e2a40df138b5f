"""
Configuration management for the Discord MultiHost system.

Settings are read from environment variables (optionally via a .env file)
into a single dataclass shared by the coordinator, adapter and control API.
"""

from .settings import MultiHostConfig, ConfigManager, config_manager

__all__ = [
    "MultiHostConfig",
    "ConfigManager",
    "config_manager",
]

"""
Unit tests for configuration loading.
"""

import pytest

from discord_multihost.config.settings import ConfigManager, MultiHostConfig
from discord_multihost.infrastructure.exceptions import ConfigurationError, TokenError

ENV_KEYS = [
    "DISCORD_BOT_TOKEN",
    "API_HOST",
    "API_PORT",
    "JOIN_TIMEOUT_SECONDS",
    "PARTICIPANT_LOCK_SECONDS",
    "AUTO_MUTE_ON_JOIN",
    "AUTO_DEAFEN_ON_JOIN",
    "NOTIFICATION_QUEUE_SIZE",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so values written by load_dotenv are rolled back too
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch


class TestConfigManager:
    """Test cases for ConfigManager."""

    @pytest.mark.unit
    def test_defaults(self, clean_env, tmp_path):
        config = ConfigManager(str(tmp_path / "missing.env")).get_config()

        assert config.bot_token is None
        assert config.api_host == "127.0.0.1"
        assert config.api_port == 8000
        assert config.join_timeout_seconds == 30.0
        assert config.participant_lock_seconds == 10
        assert config.notification_queue_size == 100
        assert config.auto_mute_on_join is False

    @pytest.mark.unit
    def test_environment_values(self, clean_env, tmp_path):
        clean_env.setenv("DISCORD_BOT_TOKEN", "abc")
        clean_env.setenv("API_PORT", "9001")
        clean_env.setenv("JOIN_TIMEOUT_SECONDS", "12.5")
        clean_env.setenv("AUTO_DEAFEN_ON_JOIN", "yes")
        clean_env.setenv("PARTICIPANT_LOCK_SECONDS", "20")

        config = ConfigManager(str(tmp_path / "missing.env")).get_config()

        assert config.require_token() == "abc"
        assert config.api_port == 9001
        assert config.join_timeout_seconds == 12.5
        assert config.auto_deafen_on_join is True
        assert config.participant_lock_seconds == 20

    @pytest.mark.unit
    def test_env_file_is_loaded(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DISCORD_BOT_TOKEN=from_file\nAUTO_MUTE_ON_JOIN=true\n")

        config = ConfigManager(str(env_file)).get_config()

        assert config.bot_token == "from_file"
        assert config.auto_mute_on_join is True

    @pytest.mark.unit
    def test_invalid_integer(self, clean_env, tmp_path):
        clean_env.setenv("API_PORT", "eighty")

        with pytest.raises(ConfigurationError, match="API_PORT"):
            ConfigManager(str(tmp_path / "missing.env")).get_config()

    @pytest.mark.unit
    def test_non_positive_lock_duration(self, clean_env, tmp_path):
        clean_env.setenv("PARTICIPANT_LOCK_SECONDS", "0")

        with pytest.raises(ConfigurationError):
            ConfigManager(str(tmp_path / "missing.env")).get_config()


class TestMultiHostConfig:
    """Test cases for MultiHostConfig."""

    @pytest.mark.unit
    def test_require_token_missing(self):
        with pytest.raises(TokenError):
            MultiHostConfig().require_token()

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "field", ["join_timeout_seconds", "participant_lock_seconds", "notification_queue_size"]
    )
    def test_rejects_non_positive(self, field):
        with pytest.raises(ConfigurationError):
            MultiHostConfig(**{field: 0})

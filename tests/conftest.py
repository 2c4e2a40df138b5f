"""
Pytest configuration and shared fixtures for the Discord MultiHost test suite.

This module provides common fixtures and configuration for all tests.
"""

import pytest

from discord_multihost.core import EventSessionManager, NotificationHub
from discord_multihost.core.models import OccupantSnapshot
from discord_multihost.config.settings import MultiHostConfig

from .helpers import ALICE_ID, BOB_ID, CHANNEL_ID, FakeVoiceAdapter, ManualClock


@pytest.fixture
def clock():
    """Manually advanced clock."""
    return ManualClock()


@pytest.fixture
def fake_adapter():
    """Scripted voice platform with alice and bob in the stage channel."""
    adapter = FakeVoiceAdapter()
    adapter.occupants[CHANNEL_ID] = [
        OccupantSnapshot(ALICE_ID, "alice"),
        OccupantSnapshot(BOB_ID, "bob", is_self_muted=True),
    ]
    return adapter


@pytest.fixture
def notification_hub():
    """Create a notification hub for testing."""
    return NotificationHub(queue_size=100)


@pytest.fixture
def manager(fake_adapter, notification_hub, clock):
    """Coordinator wired to the fake platform and manual clock."""
    return EventSessionManager(
        fake_adapter,
        notifications=notification_hub,
        join_timeout_seconds=1.0,
        clock=clock,
    )


@pytest.fixture
def mock_config():
    """Create a configuration for testing."""
    return MultiHostConfig(
        bot_token="mock_bot_token",
        api_host="127.0.0.1",
        api_port=8080,
        join_timeout_seconds=5.0,
        participant_lock_seconds=10,
        auto_mute_on_join=False,
        auto_deafen_on_join=False,
        notification_queue_size=50,
        log_level="DEBUG",
    )


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )

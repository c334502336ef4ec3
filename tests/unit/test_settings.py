"""
Unit tests for settings.

Tests cover:
- Comma-separated list settings read from the environment
- Lock wait and expiry derived from the API timeout
- Explicit lock overrides
"""

import pytest

from app.config.settings import Settings
from app.utils.locks import KeyedLock
from bot.initialization.storage import setup_session_storage


TOKEN = "123456789:ABCdefGHIjklMNOpqrsTUVwxyz123456789"


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, telegram_bot_token=TOKEN, **overrides)


class TestListSettings:
    """List settings accept the comma-separated form used in .env files."""

    def test_comma_separated_env(self, monkeypatch):
        monkeypatch.setenv("KYC_EXEMPT_FEATURES", "start, Help,kyc,")
        monkeypatch.setenv("SUPPORTED_NETWORKS", "polygon,base")

        config = make_settings()

        assert config.kyc_exempt_features == ["start", "help", "kyc"]
        assert config.supported_networks == ["polygon", "base"]

    def test_single_value_env(self, monkeypatch):
        monkeypatch.setenv("SUPPORTED_NETWORKS", "arbitrum")
        assert make_settings().supported_networks == ["arbitrum"]

    def test_defaults_without_env(self, monkeypatch):
        monkeypatch.delenv("KYC_EXEMPT_FEATURES", raising=False)
        monkeypatch.delenv("SUPPORTED_NETWORKS", raising=False)

        config = make_settings()

        assert "start" in config.kyc_exempt_features
        assert "polygon" in config.supported_networks

    def test_list_passed_directly(self):
        assert make_settings(supported_networks=["base"]).supported_networks == ["base"]


class TestLockTiming:
    """Lock wait and expiry follow the API timeout unless set explicitly."""

    def test_defaults_cover_three_api_calls(self):
        config = make_settings(api_timeout_seconds=15.0)

        assert config.lock_hold_seconds() == 50.0
        assert config.get_lock_wait_seconds() == 50.0
        assert config.get_lock_ttl_ms() == 55000

    def test_defaults_follow_timeout(self):
        short = make_settings(api_timeout_seconds=2.0)
        long = make_settings(api_timeout_seconds=30.0)

        assert short.get_lock_wait_seconds() == 11.0
        assert long.get_lock_wait_seconds() == 95.0
        assert long.get_lock_ttl_ms() > long.get_lock_wait_seconds() * 1000

    def test_explicit_values_win(self):
        config = make_settings(
            api_timeout_seconds=15.0,
            session_lock_wait_seconds=5.0,
            session_lock_ttl_ms=8000,
        )

        assert config.get_lock_wait_seconds() == 5.0
        assert config.get_lock_ttl_ms() == 8000

    def test_wait_from_env(self, monkeypatch):
        monkeypatch.setenv("SESSION_LOCK_WAIT_SECONDS", "70")
        assert make_settings().get_lock_wait_seconds() == 70.0

    @pytest.mark.asyncio
    async def test_memory_backend_lock_uses_derived_wait(self):
        config = make_settings(session_backend="memory", api_timeout_seconds=10.0)

        service, redis_client = await setup_session_storage(config)

        assert redis_client is None
        assert isinstance(service.lock, KeyedLock)
        assert service.lock.timeout == 35.0

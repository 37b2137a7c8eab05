"""Tests for configuration and the service factory."""

import os
from unittest.mock import patch

import pytest

from coinwatch.market.client import DEFAULT_BASE_URL
from coinwatch.market.config import MarketConfig
from coinwatch.market.factory import create_market_services, create_store
from coinwatch.market.store import JsonFileStore, MemoryStore


class TestMarketConfig:
    """Tests for MarketConfig.from_env."""

    def test_defaults(self):
        """Test values when no variables are set."""
        with patch.dict(os.environ, {}, clear=True):
            config = MarketConfig.from_env()

        assert config.api_base_url == DEFAULT_BASE_URL
        assert config.requests_per_minute == 25
        assert config.max_attempts == 3
        assert config.cache_max_entries == 100
        assert config.cache_max_bytes == 10 * 1024 * 1024
        assert config.page_size == 50
        assert config.store_path == ""

    def test_overrides(self):
        """Test that variables override defaults."""
        env = {
            "COINWATCH_API_BASE_URL": "https://mirror.test/api",
            "COINWATCH_REQUESTS_PER_MINUTE": "10",
            "COINWATCH_MAX_RETRY_DELAY": "2.5",
            "COINWATCH_PAGE_SIZE": "25",
        }
        with patch.dict(os.environ, env, clear=True):
            config = MarketConfig.from_env()

        assert config.api_base_url == "https://mirror.test/api"
        assert config.requests_per_minute == 10
        assert config.max_retry_delay == 2.5
        assert config.page_size == 25

    def test_blank_values_use_defaults(self):
        """Test that whitespace-only variables are ignored."""
        with patch.dict(os.environ, {"COINWATCH_API_BASE_URL": "  ", "COINWATCH_MAX_ATTEMPTS": " "}, clear=True):
            config = MarketConfig.from_env()

        assert config.api_base_url == DEFAULT_BASE_URL
        assert config.max_attempts == 3

    def test_malformed_number_raises(self):
        """Test that a non-numeric value is rejected."""
        with patch.dict(os.environ, {"COINWATCH_REQUESTS_PER_MINUTE": "lots"}, clear=True):
            with pytest.raises(ValueError):
                MarketConfig.from_env()


class TestFactory:
    """Tests for create_market_services and create_store."""

    def test_memory_store_without_path(self):
        """Test that no store path means in-memory state."""
        assert isinstance(create_store(MarketConfig()), MemoryStore)

    def test_json_store_with_path(self, tmp_path):
        """Test that COINWATCH_STORE_PATH selects the file store."""
        path = tmp_path / "state.json"
        with patch.dict(os.environ, {"COINWATCH_STORE_PATH": str(path)}, clear=True):
            services = create_market_services()

        assert isinstance(services.store, JsonFileStore)
        assert services.store.path == path

    def test_services_share_store(self, store):
        """Test that favorites and preferences persist into the given store."""
        services = create_market_services(MarketConfig(), store=store)
        services.favorites.toggle("bitcoin")
        services.preferences.currency = "eur"

        assert services.store is store
        assert store.get("FavoriteCryptocurrencies") == ["bitcoin"]
        assert store.get("currency_preference") == "eur"

    def test_config_applied(self, store):
        """Test that the page size reaches the controller."""
        services = create_market_services(MarketConfig(page_size=20), store=store)
        assert services.controller.validity_window == 15.0
        assert services.controller._page_size == 20

    @pytest.mark.asyncio
    async def test_close(self, store):
        """Test that closing unstarted services is safe."""
        services = create_market_services(MarketConfig(), store=store)
        await services.close()

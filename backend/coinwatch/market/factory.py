"""Composition root: builds each market data service once and wires them together."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .cache import ResponseCache
from .client import PricingClient
from .config import MarketConfig
from .controller import ListController
from .currency import CurrencyConverter
from .favorites import FavoritesStore
from .interface import KeyValueStore
from .preferences import PreferencesStore
from .rate_limiter import RateLimiter
from .reachability import ReachabilityMonitor
from .store import JsonFileStore, MemoryStore

logger = logging.getLogger(__name__)


@dataclass
class MarketServices:
    """Every long-lived service, constructed once and passed to consumers."""

    store: KeyValueStore
    reachability: ReachabilityMonitor
    client: PricingClient
    converter: CurrencyConverter
    favorites: FavoritesStore
    preferences: PreferencesStore
    controller: ListController

    async def close(self) -> None:
        await self.controller.stop()
        self.favorites.close()
        await self.client.close()
        await self.converter.close()


def create_store(config: MarketConfig) -> KeyValueStore:
    """JsonFileStore when COINWATCH_STORE_PATH is set, else MemoryStore."""
    if config.store_path:
        logger.info("Persisted state: %s", config.store_path)
        return JsonFileStore(config.store_path)
    logger.info("Persisted state: in-memory (not saved)")
    return MemoryStore()


def create_market_services(
    config: MarketConfig | None = None,
    store: KeyValueStore | None = None,
) -> MarketServices:
    """Create the full service graph. Defaults to MarketConfig.from_env().

    Returns unstarted services. Caller must await services.controller.start().
    """
    config = config or MarketConfig.from_env()
    store = store if store is not None else create_store(config)

    reachability = ReachabilityMonitor()
    client = PricingClient(
        config.api_base_url,
        cache=ResponseCache(config.cache_max_entries, config.cache_max_bytes),
        rate_limiter=RateLimiter(quota=config.requests_per_minute),
        reachability=reachability,
        max_attempts=config.max_attempts,
        max_delay=config.max_retry_delay,
        request_timeout=config.request_timeout,
        resource_timeout=config.resource_timeout,
    )
    converter = CurrencyConverter()
    favorites = FavoritesStore(store)
    preferences = PreferencesStore(store)
    controller = ListController(
        client,
        favorites,
        preferences,
        converter,
        page_size=config.page_size,
    )
    logger.info("Market data API: %s", config.api_base_url)
    return MarketServices(
        store=store,
        reachability=reachability,
        client=client,
        converter=converter,
        favorites=favorites,
        preferences=preferences,
        controller=controller,
    )

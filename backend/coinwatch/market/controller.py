"""Reactive list state for the top-coins and favorites tabs."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from enum import IntEnum
from typing import Any

from .client import PricingClient
from .currency import CurrencyConverter
from .errors import NetworkUnavailable, PricingError, RateLimitExceeded
from .favorites import FavoritesStore
from .models import Coin
from .preferences import PreferencesStore, SortPreference

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
SEARCH_DEBOUNCE = 0.3  # seconds
MANUAL_VALIDITY = 30.0  # staleness window when auto-refresh is off
MIN_VALIDITY = 0.5
LIVE_THRESHOLD = 1.0  # intervals at or below this always force-refresh

Listener = Callable[["ListController"], None]


class Tab(IntEnum):
    TOP = 0
    FAVORITES = 1


def sort_coins(coins: list[Coin], order: SortPreference) -> list[Coin]:
    """Order coins for display. Missing numeric values sort as 0."""
    if order is SortPreference.ALPHABETICAL:
        return sorted(coins, key=lambda c: c.name.casefold())
    if order is SortPreference.VOLUME:
        return sorted(coins, key=lambda c: c.volume_24h or 0.0, reverse=True)
    if order is SortPreference.PRICE:
        return sorted(coins, key=lambda c: c.price_usd, reverse=True)
    if order is SortPreference.PRICE_CHANGE:
        return sorted(coins, key=lambda c: c.percent_change_24h or 0.0, reverse=True)
    return sorted(coins, key=lambda c: c.market_cap_usd or 0.0, reverse=True)


class ListController:
    """Owns the list state a view layer renders.

    All state lives on the event loop: mutations happen only inside this
    class's coroutines and callbacks, and every change bumps ``version`` and
    notifies subscribers.

    Guards (is_loading, is_loading_more, is_favorites_loading) stop duplicate
    concurrent runs of the same operation. Different operations are not
    serialized against each other, so a refresh and a "load more" can
    interleave; the last one to finish wins.

    Lifecycle:
        controller = ListController(client, favorites, preferences, converter)
        await controller.start()       # initial loads + auto-refresh
        controller.set_search_text("bit")
        await controller.load_more()
        await controller.stop()
    """

    def __init__(
        self,
        client: PricingClient,
        favorites: FavoritesStore,
        preferences: PreferencesStore,
        converter: CurrencyConverter,
        *,
        page_size: int = 50,
        search_debounce: float = SEARCH_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._favorites = favorites
        self._preferences = preferences
        self._converter = converter
        self._page_size = page_size
        self._search_debounce = search_debounce
        self._clock = clock
        self._sleep = sleep

        # Published state
        self.cryptocurrencies: list[Coin] = []
        self.favorite_cryptocurrencies: list[Coin] = []
        self.search_results: list[Coin] = []
        self.is_loading = False
        self.is_loading_more = False
        self.is_favorites_loading = False
        self.is_searching = False
        self.error_message: str | None = None
        self.search_text = ""
        self.selected_tab = Tab.TOP

        # Pagination cursor (0-based page index; requests are 1-based)
        self.current_page = 0
        self.total_coins_available = 0
        self.has_more_data = True

        self._top_last_loaded: float | None = None
        self._favorites_last_loaded: float | None = None

        self._search_task: asyncio.Task | None = None
        self._search_generation = 0
        self._refresh_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._listeners: list[Listener] = []
        self._unsubscribe_settings: Callable[[], None] | None = None
        self._version = 0

    # --- Lifecycle ---

    async def start(self) -> None:
        """Load both tabs, refresh rates, and arm auto-refresh. Call once."""
        self._unsubscribe_settings = self._preferences.subscribe(self._on_settings_changed)
        await asyncio.gather(
            self.load_top(),
            self.load_favorites(),
            self._converter.refresh_rates(),
        )
        self._arm_auto_refresh()
        logger.info("List controller started")

    async def stop(self) -> None:
        """Cancel timers and pending work. Safe to call multiple times."""
        if self._unsubscribe_settings is not None:
            self._unsubscribe_settings()
            self._unsubscribe_settings = None

        tasks = [t for t in (self._refresh_task, self._search_task) if t is not None]
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._refresh_task = None
        self._search_task = None
        self._background.clear()
        logger.info("List controller stopped")

    # --- Subscription ---

    @property
    def version(self) -> int:
        """Monotonically increasing; bumped on every state change."""
        return self._version

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener(controller) after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> dict:
        """Serialize the published state for JSON / SSE transmission."""
        return {
            "version": self._version,
            "selected_tab": self.selected_tab.name.lower(),
            "currency": self._preferences.currency.value,
            "cryptocurrencies": [c.to_dict() for c in self.cryptocurrencies],
            "favorites": [c.to_dict() for c in self.favorite_cryptocurrencies],
            "search_results": [c.to_dict() for c in self.search_results],
            "is_loading": self.is_loading,
            "is_loading_more": self.is_loading_more,
            "is_favorites_loading": self.is_favorites_loading,
            "is_searching": self.is_searching,
            "has_more_data": self.has_more_data,
            "error_message": self.error_message,
        }

    # --- Top coins ---

    @property
    def can_load_more(self) -> bool:
        return self.has_more_data and not self.is_loading and not self.is_loading_more

    async def load_top(self, *, refresh: bool = False) -> None:
        """Reset pagination and load the first page."""
        if self.is_loading:
            return
        self.is_loading = True
        self.error_message = None
        self.current_page = 0
        self.has_more_data = True
        self._publish()

        try:
            page = await self._client.fetch_top_page(
                1, self._page_size, self._preferences.currency, refresh=refresh
            )
        except PricingError as e:
            logger.warning("Top coins load failed: %s", e)
            self.error_message = e.user_message
        else:
            self.cryptocurrencies = list(page.coins)
            self.total_coins_available = page.total_count
            self.has_more_data = self._page_has_more(len(page.coins))
            self._top_last_loaded = self._clock()
        finally:
            self.is_loading = False
            self._publish()

    async def load_more(self) -> None:
        """Append the next page. On failure the cursor reverts and pagination stops."""
        if not self.can_load_more:
            return
        self.is_loading_more = True
        self.current_page += 1
        self._publish()

        try:
            page = await self._client.fetch_top_page(
                self.current_page + 1, self._page_size, self._preferences.currency
            )
        except PricingError as e:
            logger.warning("Load more (page %d) failed: %s", self.current_page + 1, e)
            self.current_page -= 1
            self.has_more_data = False
            if isinstance(e, (NetworkUnavailable, RateLimitExceeded)):
                self.error_message = e.user_message
        else:
            self.cryptocurrencies = self.cryptocurrencies + list(page.coins)
            self.total_coins_available = page.total_count
            self.has_more_data = self._page_has_more(len(page.coins))
        finally:
            self.is_loading_more = False
            self._publish()

    async def retry_load_more(self) -> None:
        """User-triggered retry after a failed "load more": re-request the reverted page."""
        if self.is_loading or self.is_loading_more:
            return
        loaded_through = (self.current_page + 1) * self._page_size
        self.has_more_data = self.total_coins_available == 0 or (
            loaded_through < self.total_coins_available
        )
        await self.load_more()

    def _page_has_more(self, received: int) -> bool:
        next_start = (self.current_page + 1) * self._page_size
        return received == self._page_size and next_start < self.total_coins_available

    # --- Favorites ---

    async def load_favorites(self, *, refresh: bool = False) -> None:
        nameids = self._favorites.nameids()
        if not nameids:
            self.favorite_cryptocurrencies = []
            self._favorites_last_loaded = self._clock()
            self._publish()
            return
        if self.is_favorites_loading:
            return

        self.is_favorites_loading = True
        self._publish()
        try:
            coins = await self._client.fetch_by_nameids(
                nameids, self._preferences.currency, refresh=refresh
            )
        except PricingError as e:
            logger.warning("Favorites load failed: %s", e)
            if isinstance(e, NetworkUnavailable):
                self.error_message = e.user_message
        else:
            self.favorite_cryptocurrencies = sort_coins(coins, self._preferences.sort)
            self._favorites_last_loaded = self._clock()
        finally:
            self.is_favorites_loading = False
            self._publish()

    def is_favorite(self, coin: Coin) -> bool:
        return self._favorites.is_favorite(coin)

    async def toggle_favorite(self, coin: Coin) -> None:
        self._favorites.toggle(coin)
        self._favorites_last_loaded = None
        self._publish()
        if self.selected_tab is Tab.FAVORITES:
            await self.refresh_if_needed()

    def apply_sorting_to_favorites(self) -> None:
        """Re-sort the loaded favorites without touching the network."""
        self.favorite_cryptocurrencies = sort_coins(
            self.favorite_cryptocurrencies, self._preferences.sort
        )
        self._publish()

    # --- Search ---

    def set_search_text(self, text: str) -> None:
        """Debounced search. Each call supersedes the previous pending search."""
        self.search_text = text
        self._cancel_search()

        query = text.strip()
        if len(query) < MIN_SEARCH_LENGTH:
            self.search_results = []
            self.is_searching = False
            self._publish()
            return

        self.is_searching = True
        self._publish()
        self._search_task = asyncio.create_task(
            self._run_search(query, self._search_generation), name="coin-search"
        )

    def clear_search(self) -> None:
        self._cancel_search()
        self.search_text = ""
        self.search_results = []
        self.is_searching = False
        self._publish()

    async def wait_for_search(self) -> None:
        """Wait until the pending search (if any) has settled."""
        task = self._search_task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _cancel_search(self) -> None:
        self._search_generation += 1
        if self._search_task is not None and not self._search_task.done():
            self._search_task.cancel()
        self._search_task = None

    async def _run_search(self, query: str, generation: int) -> None:
        await self._sleep(self._search_debounce)
        if generation != self._search_generation:
            return

        try:
            results = await self._client.search(query, self._preferences.currency)
        except PricingError as e:
            if generation != self._search_generation:
                return
            logger.debug("Search for %r failed: %s", query, e)
            if isinstance(e, (NetworkUnavailable, RateLimitExceeded)):
                self.error_message = e.user_message
            results = []

        if generation != self._search_generation:
            logger.debug("Discarding stale results for %r", query)
            return
        self.search_results = results
        self.is_searching = False
        self._publish()

    # --- Refresh ---

    async def select_tab(self, tab: Tab | int) -> None:
        self.selected_tab = Tab(tab)
        self._publish()
        await self.refresh_if_needed()

    @property
    def validity_window(self) -> float:
        """How long loaded data counts as fresh: half the refresh interval, min 0.5s."""
        interval = self._preferences.refresh_interval.seconds
        if interval is None:
            return MANUAL_VALIDITY
        return max(interval / 2, MIN_VALIDITY)

    async def refresh_if_needed(self) -> None:
        """Reload the active tab only if its data is missing or stale."""
        if self.selected_tab is Tab.TOP:
            if self._is_fresh(self._top_last_loaded, self.cryptocurrencies):
                logger.debug("Top coins still fresh, skipping refresh")
                return
            await self.load_top(refresh=True)
            return

        loaded = {coin.nameid for coin in self.favorite_cryptocurrencies}
        if set(self._favorites.nameids()) != loaded:
            logger.debug("Favorites changed, reloading")
            await self.load_favorites(refresh=True)
            return
        if self._is_fresh(self._favorites_last_loaded, self.favorite_cryptocurrencies):
            logger.debug("Favorites still fresh, skipping refresh")
            return
        await self.load_favorites(refresh=True)

    async def force_refresh(self) -> None:
        """Reload the active tab regardless of freshness."""
        if self.selected_tab is Tab.TOP:
            await self.load_top(refresh=True)
        else:
            await self.load_favorites(refresh=True)

    def _is_fresh(self, last_loaded: float | None, items: list[Coin]) -> bool:
        if last_loaded is None or not items:
            return False
        return self._clock() - last_loaded < self.validity_window

    def _arm_auto_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None

        interval = self._preferences.refresh_interval.seconds
        if interval is None:
            logger.info("Auto-refresh disabled (manual)")
            return
        self._refresh_task = asyncio.create_task(
            self._auto_refresh_loop(interval), name="auto-refresh"
        )
        logger.info("Auto-refresh every %.0fs", interval)

    async def _auto_refresh_loop(self, interval: float) -> None:
        while True:
            await self._sleep(interval)
            try:
                if interval <= LIVE_THRESHOLD:
                    await self.force_refresh()
                else:
                    await self.refresh_if_needed()
            except Exception:
                logger.exception("Auto-refresh failed")

    # --- Settings ---

    def _on_settings_changed(self) -> None:
        self._spawn(self._handle_settings_changed())

    async def _handle_settings_changed(self) -> None:
        """Re-arm the timer, refresh rates, and reload lists (sort or currency may differ)."""
        try:
            self._arm_auto_refresh()
            await self._converter.refresh_rates()
            await self.load_favorites(refresh=True)
            if self.selected_tab is Tab.TOP:
                await self.load_top(refresh=True)
        except Exception:
            logger.exception("Settings change handling failed")

    def display_price(self, coin: Coin) -> float:
        """Coin price in the active display currency."""
        return self._converter.convert(coin.price_usd, self._preferences.currency)

    # --- Internal ---

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("Settings changed with no running event loop; not reloading")
            return
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _publish(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("State listener failed")

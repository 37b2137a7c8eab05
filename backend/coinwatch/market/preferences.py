"""User preferences: display currency, refresh cadence, favorites sort order."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum
from threading import Lock

from .interface import KeyValueStore

logger = logging.getLogger(__name__)

CURRENCY_KEY = "currency_preference"
REFRESH_INTERVAL_KEY = "data_refresh_interval"
SORT_KEY = "watchlist_sorting"

Listener = Callable[[], None]


class CurrencyPreference(StrEnum):
    """Display currency. Values are the persisted strings."""

    USD = "usd"
    EUR = "eur"
    GBP = "gbp"
    JPY = "jpy"
    CAD = "cad"
    AUD = "aud"
    CHF = "chf"
    CNY = "cny"
    NOK = "nok"
    SEK = "sek"
    DKK = "dkk"
    PLN = "pln"
    CZK = "czk"
    HUF = "huf"
    RON = "ron"
    BGN = "bgn"
    HRK = "hrk"
    RSD = "rsd"
    ISK = "isk"
    TRY = "try"
    RUB = "rub"
    UAH = "uah"
    BTC = "btc"
    ETH = "eth"
    BNB = "bnb"
    ADA = "ada"
    DOT = "dot"
    SOL = "sol"

    @property
    def display_name(self) -> str:
        return self.value.upper()

    @property
    def symbol(self) -> str:
        return _CURRENCY_SYMBOLS.get(self.value, self.display_name)

    @property
    def is_crypto(self) -> bool:
        return self.value in _CRYPTO_CURRENCIES


_CRYPTO_CURRENCIES = frozenset({"btc", "eth", "bnb", "ada", "dot", "sol"})

_CURRENCY_SYMBOLS = {
    "usd": "$",
    "eur": "€",
    "gbp": "£",
    "jpy": "¥",
    "cad": "C$",
    "aud": "A$",
    "cny": "¥",
    "nok": "kr",
    "sek": "kr",
    "dkk": "kr",
    "pln": "zł",
    "czk": "Kč",
    "huf": "Ft",
    "ron": "lei",
    "bgn": "лв",
    "hrk": "kn",
    "rsd": "дин",
    "isk": "kr",
    "try": "₺",
    "rub": "₽",
    "uah": "₴",
    "btc": "₿",
    "eth": "Ξ",
    "ada": "₳",
}


class RefreshInterval(StrEnum):
    """Auto-refresh cadence. "1" is the live tier, "manual" never refreshes."""

    LIVE = "1"
    TEN_SECONDS = "10"
    THIRTY_SECONDS = "30"
    ONE_MINUTE = "60"
    FIVE_MINUTES = "300"
    MANUAL = "manual"

    @property
    def seconds(self) -> float | None:
        """Interval length, or None for manual refresh."""
        if self is RefreshInterval.MANUAL:
            return None
        return float(self.value)

    @property
    def display_name(self) -> str:
        return _INTERVAL_NAMES[self.value]


_INTERVAL_NAMES = {
    "1": "Live",
    "10": "10 seconds",
    "30": "30 seconds",
    "60": "1 minute",
    "300": "5 minutes",
    "manual": "Manual",
}


class SortPreference(StrEnum):
    """Favorites ordering."""

    MARKET_CAP = "market_cap"
    VOLUME = "volume"
    PRICE = "price"
    ALPHABETICAL = "alphabetical"
    PRICE_CHANGE = "price_change"


DEFAULT_CURRENCY = CurrencyPreference.USD
DEFAULT_REFRESH_INTERVAL = RefreshInterval.THIRTY_SECONDS
DEFAULT_SORT = SortPreference.MARKET_CAP


class PreferencesStore:
    """Persisted preferences with a single "settings changed" signal.

    Each preference is stored under its own key. Every effective change
    (setting a preference to its current value is ignored) notifies all
    listeners once; reset_to_defaults() also notifies once.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._lock = Lock()
        self._listeners: list[Listener] = []
        self._currency = _read(store, CURRENCY_KEY, CurrencyPreference, DEFAULT_CURRENCY)
        self._refresh_interval = _read(
            store, REFRESH_INTERVAL_KEY, RefreshInterval, DEFAULT_REFRESH_INTERVAL
        )
        self._sort = _read(store, SORT_KEY, SortPreference, DEFAULT_SORT)

    @property
    def currency(self) -> CurrencyPreference:
        return self._currency

    @currency.setter
    def currency(self, value: CurrencyPreference | str) -> None:
        value = CurrencyPreference(value)
        with self._lock:
            if value == self._currency:
                return
            self._currency = value
            self._store.set(CURRENCY_KEY, value.value)
        self._changed()

    @property
    def refresh_interval(self) -> RefreshInterval:
        return self._refresh_interval

    @refresh_interval.setter
    def refresh_interval(self, value: RefreshInterval | str) -> None:
        value = RefreshInterval(value)
        with self._lock:
            if value == self._refresh_interval:
                return
            self._refresh_interval = value
            self._store.set(REFRESH_INTERVAL_KEY, value.value)
        self._changed()

    @property
    def sort(self) -> SortPreference:
        return self._sort

    @sort.setter
    def sort(self, value: SortPreference | str) -> None:
        value = SortPreference(value)
        with self._lock:
            if value == self._sort:
                return
            self._sort = value
            self._store.set(SORT_KEY, value.value)
        self._changed()

    @property
    def should_auto_refresh(self) -> bool:
        return self._refresh_interval is not RefreshInterval.MANUAL

    def reset_to_defaults(self) -> None:
        with self._lock:
            self._currency = DEFAULT_CURRENCY
            self._refresh_interval = DEFAULT_REFRESH_INTERVAL
            self._sort = DEFAULT_SORT
            self._store.set(CURRENCY_KEY, DEFAULT_CURRENCY.value)
            self._store.set(REFRESH_INTERVAL_KEY, DEFAULT_REFRESH_INTERVAL.value)
            self._store.set(SORT_KEY, DEFAULT_SORT.value)
        self._changed()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a "settings changed" listener. Returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _changed(self) -> None:
        logger.info(
            "Settings changed: currency=%s refresh=%s sort=%s",
            self._currency.value,
            self._refresh_interval.value,
            self._sort.value,
        )
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception("Settings listener failed")


def _read(store, key, enum_type, default):
    raw = store.get(key)
    if not isinstance(raw, str):
        return default
    try:
        return enum_type(raw)
    except ValueError:
        logger.warning("Unknown %s value %r, using %s", key, raw, default.value)
        return default

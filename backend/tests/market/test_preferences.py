"""Tests for PreferencesStore and preference enums."""

from coinwatch.market.preferences import (
    CURRENCY_KEY,
    REFRESH_INTERVAL_KEY,
    SORT_KEY,
    CurrencyPreference,
    PreferencesStore,
    RefreshInterval,
    SortPreference,
)
from coinwatch.market.store import MemoryStore


class TestEnums:
    def test_refresh_seconds(self):
        """Test interval lengths, manual has none."""
        assert RefreshInterval.LIVE.seconds == 1.0
        assert RefreshInterval.FIVE_MINUTES.seconds == 300.0
        assert RefreshInterval.MANUAL.seconds is None

    def test_refresh_display_names(self):
        assert RefreshInterval.LIVE.display_name == "Live"
        assert RefreshInterval.ONE_MINUTE.display_name == "1 minute"

    def test_currency_properties(self):
        """Test symbols and crypto classification."""
        assert CurrencyPreference.EUR.symbol == "€"
        assert CurrencyPreference.CHF.symbol == "CHF"
        assert CurrencyPreference.BTC.is_crypto
        assert not CurrencyPreference.GBP.is_crypto
        assert CurrencyPreference.SOL.display_name == "SOL"

    def test_currency_count(self):
        """Test that 22 fiat and 6 crypto currencies are offered."""
        assert len(CurrencyPreference) == 28
        assert sum(1 for c in CurrencyPreference if c.is_crypto) == 6


class TestPreferencesStore:
    """Persistence and change notification."""

    def test_defaults(self, store):
        """Test values when nothing is stored."""
        prefs = PreferencesStore(store)
        assert prefs.currency is CurrencyPreference.USD
        assert prefs.refresh_interval is RefreshInterval.THIRTY_SECONDS
        assert prefs.sort is SortPreference.MARKET_CAP
        assert prefs.should_auto_refresh

    def test_persisted_values_loaded(self):
        """Test that stored strings are read back as enums."""
        store = MemoryStore({CURRENCY_KEY: "eur", REFRESH_INTERVAL_KEY: "manual", SORT_KEY: "volume"})
        prefs = PreferencesStore(store)
        assert prefs.currency is CurrencyPreference.EUR
        assert prefs.refresh_interval is RefreshInterval.MANUAL
        assert prefs.sort is SortPreference.VOLUME
        assert not prefs.should_auto_refresh

    def test_invalid_values_fall_back(self):
        """Test that unknown stored strings use defaults."""
        store = MemoryStore({CURRENCY_KEY: "doubloons", REFRESH_INTERVAL_KEY: "7"})
        prefs = PreferencesStore(store)
        assert prefs.currency is CurrencyPreference.USD
        assert prefs.refresh_interval is RefreshInterval.THIRTY_SECONDS

    def test_setter_persists(self, store):
        """Test that writes reach the store as raw strings."""
        prefs = PreferencesStore(store)
        prefs.currency = CurrencyPreference.GBP
        prefs.refresh_interval = "60"
        prefs.sort = SortPreference.ALPHABETICAL
        assert store.get(CURRENCY_KEY) == "gbp"
        assert store.get(REFRESH_INTERVAL_KEY) == "60"
        assert store.get(SORT_KEY) == "alphabetical"
        assert PreferencesStore(store).currency is CurrencyPreference.GBP

    def test_change_notifies_once(self, store):
        """Test one signal per effective change."""
        prefs = PreferencesStore(store)
        signals = []
        prefs.subscribe(lambda: signals.append(1))
        prefs.currency = "eur"
        assert len(signals) == 1

    def test_same_value_no_signal(self, store):
        """Test that writing the current value is ignored."""
        prefs = PreferencesStore(store)
        signals = []
        prefs.subscribe(lambda: signals.append(1))
        prefs.currency = CurrencyPreference.USD
        prefs.sort = SortPreference.MARKET_CAP
        assert signals == []

    def test_reset_to_defaults(self, store):
        """Test that reset restores defaults with a single signal."""
        prefs = PreferencesStore(store)
        prefs.currency = "eur"
        prefs.sort = "price"
        signals = []
        prefs.subscribe(lambda: signals.append(1))
        prefs.reset_to_defaults()
        assert prefs.currency is CurrencyPreference.USD
        assert prefs.sort is SortPreference.MARKET_CAP
        assert store.get(CURRENCY_KEY) == "usd"
        assert len(signals) == 1

    def test_unsubscribe(self, store):
        prefs = PreferencesStore(store)
        signals = []
        unsubscribe = prefs.subscribe(lambda: signals.append(1))
        unsubscribe()
        prefs.currency = "eur"
        assert signals == []

"""Tests for FavoritesStore."""

import threading

from coinwatch.market.favorites import FAVORITES_KEY, FavoritesStore
from coinwatch.market.models import Coin
from coinwatch.market.store import MemoryStore


def _coin(coin_id: str, nameid: str) -> Coin:
    return Coin(id=coin_id, nameid=nameid, symbol=nameid[:3].upper(), name=nameid.title(), price_usd=1.0)


class TestFavoritesStore:
    """Membership keyed by nameid."""

    def test_starts_empty(self, store):
        """Test a fresh store has no favorites."""
        favorites = FavoritesStore(store)
        assert favorites.nameids() == frozenset()
        assert len(favorites) == 0

    def test_toggle_adds_then_removes(self, store):
        """Test that toggle flips membership and reports it."""
        favorites = FavoritesStore(store)
        assert favorites.toggle("bitcoin") is True
        assert favorites.is_favorite("bitcoin")
        assert favorites.toggle("bitcoin") is False
        assert not favorites.is_favorite("bitcoin")

    def test_identity_by_nameid(self, store):
        """Test that snapshots with different numeric ids share one favorite."""
        favorites = FavoritesStore(store)
        favorites.toggle(_coin("90", "bitcoin"))
        assert favorites.is_favorite(_coin("91", "bitcoin"))
        assert _coin("91", "bitcoin") in favorites
        favorites.toggle(_coin("91", "bitcoin"))
        assert len(favorites) == 0

    def test_persisted_as_sorted_list(self, store):
        """Test the stored representation."""
        favorites = FavoritesStore(store)
        favorites.add("solana")
        favorites.add("bitcoin")
        favorites.add("ethereum")
        assert store.get(FAVORITES_KEY) == ["bitcoin", "ethereum", "solana"]

    def test_loads_existing(self, store):
        """Test that previously saved favorites are restored."""
        store.set(FAVORITES_KEY, ["bitcoin", "dogecoin"])
        favorites = FavoritesStore(store)
        assert favorites.nameids() == {"bitcoin", "dogecoin"}

    def test_add_remove_idempotent(self, store):
        """Test that repeated add/remove do not rewrite the store."""
        favorites = FavoritesStore(store)
        writes = []
        store.observe(FAVORITES_KEY, lambda key, value: writes.append(value))
        favorites.add("bitcoin")
        favorites.add("bitcoin")
        favorites.remove("ethereum")
        favorites.remove("bitcoin")
        favorites.remove("bitcoin")
        assert writes == [["bitcoin"], []]

    def test_clear(self, store):
        """Test removing every favorite."""
        favorites = FavoritesStore(store)
        favorites.add("bitcoin")
        favorites.add("ethereum")
        favorites.clear()
        assert favorites.nameids() == frozenset()
        assert store.get(FAVORITES_KEY) == []

    def test_subscribe(self, store):
        """Test listeners get the new set after each change."""
        favorites = FavoritesStore(store)
        seen = []
        unsubscribe = favorites.subscribe(seen.append)
        favorites.toggle("bitcoin")
        favorites.toggle("ethereum")
        unsubscribe()
        favorites.toggle("bitcoin")
        assert seen == [frozenset({"bitcoin"}), frozenset({"bitcoin", "ethereum"})]

    def test_sync_between_instances(self, store):
        """Test that a write through one instance is visible through another."""
        app = FavoritesStore(store)
        widget = FavoritesStore(store)
        seen = []
        app.subscribe(seen.append)
        widget.toggle("cardano")
        assert app.is_favorite("cardano")
        assert seen == [frozenset({"cardano"})]

    def test_close_stops_sync(self, store):
        """Test that a closed instance no longer follows the store."""
        app = FavoritesStore(store)
        widget = FavoritesStore(store)
        app.close()
        widget.toggle("cardano")
        assert not app.is_favorite("cardano")

    def test_listener_failure_isolated(self, store):
        """Test that a broken listener does not break toggling."""
        favorites = FavoritesStore(store)

        def broken(nameids):
            raise RuntimeError("boom")

        favorites.subscribe(broken)
        assert favorites.toggle("bitcoin") is True
        assert favorites.is_favorite("bitcoin")


class SlowStore(MemoryStore):
    """Holds the write of one value until released."""

    def __init__(self, slow_value) -> None:
        super().__init__()
        self.slow_value = slow_value
        self.entered = threading.Event()
        self.release = threading.Event()

    def set(self, key, value):
        if value == self.slow_value:
            self.entered.set()
            self.release.wait(timeout=5)
        super().set(key, value)


class TestConcurrentWrites:
    def test_overlapping_toggles_both_kept(self):
        """Test that a toggle during a slow write is not lost in memory or on disk."""
        store = SlowStore(slow_value=["a"])
        favorites = FavoritesStore(store)

        first = threading.Thread(target=favorites.toggle, args=("a",))
        first.start()
        assert store.entered.wait(timeout=5)
        second = threading.Thread(target=favorites.toggle, args=("b",))
        second.start()
        second.join(timeout=0.1)  # Blocked behind the slow write
        store.release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert favorites.nameids() == {"a", "b"}
        assert store.get(FAVORITES_KEY) == ["a", "b"]

    def test_listener_may_toggle(self, store):
        """Test that toggling from inside a change notification does not deadlock."""
        favorites = FavoritesStore(store)

        def follow_bitcoin(nameids):
            if "bitcoin" in nameids and "wrapped-bitcoin" not in nameids:
                favorites.add("wrapped-bitcoin")

        favorites.subscribe(follow_bitcoin)
        favorites.toggle("bitcoin")
        assert favorites.nameids() == {"bitcoin", "wrapped-bitcoin"}
        assert store.get(FAVORITES_KEY) == ["bitcoin", "wrapped-bitcoin"]

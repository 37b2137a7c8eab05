"""Fixtures for market data tests.

The CoinLore and exchange rate APIs are replaced by httpx.MockTransport
handlers that record every request, so tests can count network calls.
Backoff sleeps are recorded instead of awaited.
"""

import json

import httpx
import pytest

from coinwatch.market.client import PricingClient

BASE_URL = "https://api.test/api"


def _ticker(index: int, **overrides) -> dict:
    """A CoinLore ticker for the coin ranked index + 1 (id == rank)."""
    ticker = {
        "id": str(index + 1),
        "symbol": f"c{index}",
        "name": f"Coin {index}",
        "nameid": f"coin-{index}",
        "rank": index + 1,
        "price_usd": f"{1000.0 / (index + 1):.4f}",
        "percent_change_24h": "1.50",
        "percent_change_1h": "0.10",
        "percent_change_7d": "3.00",
        "price_btc": "0.01",
        "market_cap_usd": str(1_000_000 * (1000 - index)),
        "volume24": 5000.0 + index,
        "volume24a": 4000.0,
        "csupply": "1000.00",
        "tsupply": "2000",
        "msupply": "",
    }
    ticker.update(overrides)
    return ticker


class FakeCoinLore:
    """Scripted stand-in for the ticker API.

    Queued responses (or exceptions) are served first, in order; after that
    the API answers from a generated ranked listing of ``total`` coins.
    """

    def __init__(self, total: int = 500) -> None:
        self.total = total
        self.requests: list[httpx.Request] = []
        self._queued: list = []
        self.overrides: dict[int, dict] = {}

    def queue(self, *responses) -> None:
        self._queued.extend(responses)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def ticker(self, index: int) -> dict:
        return _ticker(index, **self.overrides.get(index, {}))

    def listing(self, tickers: list[dict], total: int | None = None) -> bytes:
        info = {"coins_num": self.total if total is None else total, "time": 1700000000}
        return json.dumps({"data": tickers, "info": info}).encode()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._queued:
            scripted = self._queued.pop(0)
            if isinstance(scripted, Exception):
                raise scripted
            return scripted
        return self._answer(request)

    def _answer(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/tickers/"):
            start = int(request.url.params["start"])
            limit = int(request.url.params["limit"])
            tickers = [self.ticker(i) for i in range(start, min(start + limit, self.total))]
            return httpx.Response(200, content=self.listing(tickers))
        if request.url.path.endswith("/ticker/"):
            ids = request.url.params["id"].split(",")
            return httpx.Response(200, json=[self.ticker(int(i) - 1) for i in ids])
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def make_ticker():
    return _ticker


@pytest.fixture
def api():
    return FakeCoinLore()


@pytest.fixture
def sleeps():
    """Delays passed to the client's sleep function."""
    return []


@pytest.fixture
def make_client(api, sleeps):
    """Build a PricingClient wired to the fake API with instant sleeps."""

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(**kwargs) -> PricingClient:
        kwargs.setdefault("http_client", api.client())
        kwargs.setdefault("sleep", fake_sleep)
        return PricingClient(BASE_URL, **kwargs)

    return _make


@pytest.fixture
def rates_api():
    """Exchange rate mirror answering with a fixed table. Records requests."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"date": "2026-10-18", "usd": {"eur": 0.9, "gbp": 0.8}})

    handler.requests = requests  # type: ignore[attr-defined]
    return handler

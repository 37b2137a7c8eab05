"""USD to display-currency conversion with hourly exchange rate refresh."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable, Sequence

import httpx

from .preferences import CurrencyPreference
from .rates import (
    CRYPTO_REFERENCE_PRICES_USD,
    FALLBACK_RATES_URL,
    PRIMARY_RATES_URL,
    RATES_REFRESH_INTERVAL,
    STATIC_EXCHANGE_RATES,
)

logger = logging.getLogger(__name__)


class CurrencyConverter:
    """Converts USD amounts into the user's display currency.

    Fiat currencies use a cached USD->currency rate table refreshed at most
    once per ``refresh_interval`` from the first source that answers. Crypto
    display currencies use static reference prices. Refresh failures are
    logged and swallowed: the previous (or static) table stays in use.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        sources: Sequence[str] = (PRIMARY_RATES_URL, FALLBACK_RATES_URL),
        refresh_interval: float = RATES_REFRESH_INTERVAL,
        request_timeout: float = 15.0,
        resource_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._http = http_client
        self._owns_http = http_client is None
        self._sources = tuple(sources)
        self._refresh_interval = refresh_interval
        self._request_timeout = request_timeout
        self._resource_timeout = resource_timeout
        self._clock = clock
        self._rates: dict[str, float] = dict(STATIC_EXCHANGE_RATES)
        self._last_refresh: float | None = None
        self._refresh_lock = asyncio.Lock()

    # --- Public API ---

    def rate(self, currency: CurrencyPreference | str) -> float:
        """Units of currency per 1 USD for a fiat currency."""
        code = str(currency).lower()
        if code == "usd":
            return 1.0
        return self._rates.get(code, STATIC_EXCHANGE_RATES.get(code, 1.0))

    def convert(self, amount_usd: float, currency: CurrencyPreference | str) -> float:
        code = str(currency).lower()
        if code == "usd":
            return amount_usd
        reference_price = CRYPTO_REFERENCE_PRICES_USD.get(code)
        if reference_price is not None:
            return amount_usd / reference_price
        return amount_usd * self.rate(code)

    @property
    def rates(self) -> dict[str, float]:
        """Copy of the current fiat rate table."""
        return dict(self._rates)

    @property
    def last_refresh(self) -> float | None:
        return self._last_refresh

    async def refresh_rates(self) -> bool:
        """Fetch fresh rates unless the table is younger than the refresh interval.

        Returns True if the table was replaced. Never raises for network or
        payload failures.
        """
        async with self._refresh_lock:
            if self._last_refresh is not None and (
                self._clock() - self._last_refresh < self._refresh_interval
            ):
                return False

            for url in self._sources:
                try:
                    fetched = await self._fetch(url)
                except (httpx.HTTPError, TimeoutError, ValueError) as e:
                    logger.warning("Exchange rate source %s failed: %s", url, e)
                    continue

                self._rates = {**STATIC_EXCHANGE_RATES, **fetched}
                self._last_refresh = self._clock()
                logger.info("Exchange rates updated from %s (%d currencies)", url, len(fetched))
                return True

            logger.warning("All exchange rate sources failed, keeping previous rates")
            return False

    async def close(self) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # --- Internal ---

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._request_timeout))
            self._owns_http = True
        return self._http

    async def _fetch(self, url: str) -> dict[str, float]:
        response = await asyncio.wait_for(
            self._client().get(url, headers={"Accept": "application/json"}),
            timeout=self._resource_timeout,
        )
        response.raise_for_status()
        payload = json.loads(response.content)
        table = payload.get("usd") if isinstance(payload, dict) else None
        if not isinstance(table, dict):
            raise ValueError("missing 'usd' rate table")
        return {
            str(code).lower(): float(rate)
            for code, rate in table.items()
            if isinstance(rate, (int, float)) and not isinstance(rate, bool)
        }

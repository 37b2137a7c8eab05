"""CoinLore REST API client for live coin prices."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx

from .cache import ResponseCache
from .errors import (
    DecodingError,
    Forbidden,
    GenericNetworkError,
    InvalidRequest,
    NetworkUnavailable,
    PricingError,
    RateLimitExceeded,
    ServerError,
    Unauthorized,
)
from .models import Coin, CoinPage
from .rate_limiter import RateLimiter
from .reachability import ReachabilityMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_URL = "https://api.coinlore.net/api"
USER_AGENT = "CoinWatch/1.0"

# The API has no search or lookup-by-nameid endpoint, so both scan this many
# top coins. Anything ranked below it cannot be found.
BULK_LISTING_LIMIT = 1000
MAX_SEARCH_RESULTS = 50

# Used when the server answers 429 without a usable Retry-After header
DEFAULT_SERVER_RETRY_AFTER = 60.0


class PricingClient:
    """Market data client backed by the CoinLore REST API.

    Every operation goes through the same pipeline:
      cache lookup -> reachability check -> rate limit slot -> attempt loop
    A cache hit skips everything after it. Failures are raised as PricingError
    subclasses; transport exceptions never escape.

    Rate limits:
      - Local quota: RateLimiter (25 req/min by default), fails fast
      - Server 429 with Retry-After: waits the advertised time and retries
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        http_client: httpx.AsyncClient | None = None,
        cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
        reachability: ReachabilityMonitor | None = None,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 8.0,
        max_retry_after: float = 60.0,
        request_timeout: float = 30.0,
        resource_timeout: float = 120.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._base_url = base_url.rstrip("/")
        self._http = http_client
        self._owns_http = http_client is None
        self._cache = cache if cache is not None else ResponseCache()
        self._rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self._reachability = reachability if reachability is not None else ReachabilityMonitor()
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._max_retry_after = max_retry_after
        self._request_timeout = request_timeout
        self._resource_timeout = resource_timeout
        self._sleep = sleep
        self._headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
        }

    # --- Public API ---

    async def fetch_top_page(
        self,
        page: int = 1,
        limit: int = 50,
        currency: str = "usd",
        *,
        refresh: bool = False,
    ) -> CoinPage:
        """Fetch one page of the ranked listing together with the total coin count.

        ``page`` is 1-based. ``refresh=True`` skips the cache lookup but still
        stores the fresh response.
        """
        if page < 1 or limit < 1:
            raise InvalidRequest(f"Invalid page request: page={page} limit={limit}")
        start = (page - 1) * limit
        cache_key = f"tickers:start={start}:limit={limit}:currency={_norm(currency)}"
        return await self._get(
            "/tickers/",
            {"start": str(start), "limit": str(limit)},
            cache_key,
            _decode_page,
            refresh=refresh,
        )

    async def fetch_top(
        self,
        page: int = 1,
        limit: int = 50,
        currency: str = "usd",
        *,
        refresh: bool = False,
    ) -> list[Coin]:
        result = await self.fetch_top_page(page, limit, currency, refresh=refresh)
        return result.coins

    async def fetch_by_ids(
        self,
        ids: Iterable[str],
        currency: str = "usd",
        *,
        refresh: bool = False,
    ) -> list[Coin]:
        """Fetch market data for explicit provider ids. Empty input makes no request."""
        cleaned = [str(i).strip() for i in ids if str(i).strip()]
        if not cleaned:
            return []
        joined = ",".join(cleaned)
        cache_key = f"ticker:ids={joined}:currency={_norm(currency)}"
        return await self._get(
            "/ticker/",
            {"id": joined},
            cache_key,
            _decode_tickers,
            refresh=refresh,
        )

    async def fetch_by_nameids(
        self,
        nameids: Iterable[str],
        currency: str = "usd",
        *,
        refresh: bool = False,
    ) -> list[Coin]:
        """Resolve nameids against the bulk top listing.

        Coins ranked outside the top BULK_LISTING_LIMIT are silently missing.
        """
        wanted = set(nameids)
        if not wanted:
            return []
        listing = await self.fetch_top_page(1, BULK_LISTING_LIMIT, currency, refresh=refresh)
        found = [coin for coin in listing.coins if coin.nameid in wanted]
        logger.debug("Resolved %d/%d favorite nameids", len(found), len(wanted))
        return found

    async def search(
        self,
        query: str,
        currency: str = "usd",
        *,
        refresh: bool = False,
    ) -> list[Coin]:
        """Search coins by name, symbol, or nameid.

        Step 1 scores the bulk listing locally to pick candidate ids; step 2
        batch-fetches market data for those ids. Results keep relevance order.
        """
        normalized = query.strip().lower()
        if not normalized:
            return []

        listing = await self.fetch_top_page(1, BULK_LISTING_LIMIT, currency)
        candidates = rank_search_results(listing.coins, normalized)[:MAX_SEARCH_RESULTS]
        if not candidates:
            logger.debug("Search for %r matched nothing", query)
            return []

        fresh = await self.fetch_by_ids([c.id for c in candidates], currency, refresh=refresh)
        by_id = {coin.id: coin for coin in fresh}
        results = [by_id[c.id] for c in candidates if c.id in by_id]
        logger.debug("Search for %r returned %d results", query, len(results))
        return results

    def clear_cache(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it. Safe to call twice."""
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    # --- Internal ---

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._request_timeout))
            self._owns_http = True
        return self._http

    async def _get(
        self,
        path: str,
        params: dict[str, str],
        cache_key: str,
        decode: Callable[[bytes], T],
        *,
        refresh: bool,
    ) -> T:
        if not refresh:
            cached = self._cache.get(cache_key)
            if cached is not None:
                try:
                    result = decode(cached)
                except DecodingError:
                    logger.warning("Evicting corrupted cache entry %s", cache_key)
                    self._cache.evict(cache_key)
                else:
                    logger.debug("Cache hit: %s", cache_key)
                    return result

        if not self._reachability.is_reachable:
            raise NetworkUnavailable("Network is not reachable")

        await self._rate_limiter.acquire()
        body = await self._request_with_retry(path, params)

        self._cache.put(cache_key, body)
        try:
            return decode(body)
        except DecodingError:
            self._cache.evict(cache_key)
            raise

    async def _request_with_retry(self, path: str, params: dict[str, str]) -> bytes:
        last_error: PricingError | None = None
        for attempt in range(self._max_attempts):
            try:
                return await self._attempt(path, params)
            except PricingError as exc:
                last_error = exc
                delay = self._retry_delay(exc, attempt)
                if delay is None:
                    raise
                if attempt + 1 >= self._max_attempts:
                    break
                logger.warning(
                    "GET %s failed (%s), attempt %d/%d, retrying in %.1fs",
                    path,
                    exc,
                    attempt + 1,
                    self._max_attempts,
                    delay,
                )
                await self._sleep(delay)

        assert last_error is not None
        logger.error("GET %s failed after %d attempts: %s", path, self._max_attempts, last_error)
        raise last_error

    def _retry_delay(self, exc: PricingError, attempt: int) -> float | None:
        """Seconds to wait before the next attempt, or None if exc is terminal."""
        if not exc.retryable:
            return None
        if isinstance(exc, RateLimitExceeded):
            return exc.retry_after
        return min(self._base_delay * 2**attempt, self._max_delay)

    async def _attempt(self, path: str, params: dict[str, str]) -> bytes:
        """One HTTP round trip, classified into bytes or a PricingError."""
        url = f"{self._base_url}{path}"
        try:
            response = await asyncio.wait_for(
                self._client().get(url, params=params, headers=self._headers),
                timeout=self._resource_timeout,
            )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise InvalidRequest(f"Invalid URL {url}: {exc}") from exc
        except (httpx.HTTPError, TimeoutError) as exc:
            raise GenericNetworkError(str(exc) or type(exc).__name__) from exc

        status = response.status_code
        logger.debug("GET %s -> %d", response.request.url, status)
        if 200 <= status < 300:
            return response.content
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitExceeded(
                retry_after if retry_after is not None else DEFAULT_SERVER_RETRY_AFTER,
                from_server=True,
                retryable=retry_after is not None and retry_after <= self._max_retry_after,
            )
        if status == 401:
            raise Unauthorized("HTTP 401")
        if status == 403:
            raise Forbidden("HTTP 403")
        if status >= 500:
            raise ServerError(status)
        raise InvalidRequest(f"HTTP {status}")


def rank_search_results(coins: Iterable[Coin], query: str) -> list[Coin]:
    """Return coins matching query, most relevant first.

    Exact matches beat prefix matches, which beat substring matches; within a
    tier name beats symbol beats nameid. Higher ranked coins get a small boost.
    """
    query = query.strip().lower()
    if not query:
        return []

    scored: list[tuple[int, Coin]] = []
    for coin in coins:
        score = _match_score(coin, query)
        if score > 0:
            rank = coin.rank if coin.rank is not None else 1000
            scored.append((score + max(0, 100 - rank), coin))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [coin for _, coin in scored]


def _match_score(coin: Coin, query: str) -> int:
    name = coin.name.lower()
    symbol = coin.symbol.lower()
    nameid = coin.nameid.lower()

    if name == query:
        return 1000
    if symbol == query:
        return 900
    if nameid == query:
        return 850
    if name.startswith(query):
        return 800
    if symbol.startswith(query):
        return 700
    if nameid.startswith(query):
        return 650
    if query in name:
        return 500
    if query in symbol:
        return 400
    if query in nameid:
        return 350
    return 0


def _norm(currency: str) -> str:
    return str(currency).strip().lower()


def _parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Seconds to wait from a Retry-After header, in delta-seconds or HTTP-date form."""
    if value is None:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return max((when - now).total_seconds(), 0.0)
    return seconds if seconds >= 0 else None


def _load_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except ValueError as exc:
        raise DecodingError(f"Malformed JSON: {exc}") from exc


def _decode_page(body: bytes) -> CoinPage:
    payload = _load_json(body)
    try:
        coins = [Coin.from_ticker(ticker) for ticker in payload["data"]]
        total = int(payload["info"]["coins_num"])
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodingError(f"Unexpected ticker listing shape: {exc!r}") from exc
    return CoinPage(coins=coins, total_count=total)


def _decode_tickers(body: bytes) -> list[Coin]:
    payload = _load_json(body)
    if not isinstance(payload, list):
        raise DecodingError(f"Expected a ticker list, got {type(payload).__name__}")
    try:
        return [Coin.from_ticker(ticker) for ticker in payload]
    except (KeyError, TypeError, ValueError) as exc:
        raise DecodingError(f"Unexpected ticker shape: {exc!r}") from exc

"""Environment-driven configuration for the market data layer."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .client import DEFAULT_BASE_URL


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    return float(value)


@dataclass(frozen=True)
class MarketConfig:
    api_base_url: str = DEFAULT_BASE_URL
    requests_per_minute: int = 25
    max_attempts: int = 3
    max_retry_delay: float = 8.0
    request_timeout: float = 30.0
    resource_timeout: float = 120.0
    cache_max_entries: int = 100
    cache_max_bytes: int = 10 * 1024 * 1024
    page_size: int = 50
    store_path: str = ""

    @staticmethod
    def from_env() -> "MarketConfig":
        """Read COINWATCH_* variables. Malformed numbers raise ValueError."""
        return MarketConfig(
            api_base_url=os.getenv("COINWATCH_API_BASE_URL", "").strip() or DEFAULT_BASE_URL,
            requests_per_minute=parse_int(os.getenv("COINWATCH_REQUESTS_PER_MINUTE"), 25),
            max_attempts=parse_int(os.getenv("COINWATCH_MAX_ATTEMPTS"), 3),
            max_retry_delay=parse_float(os.getenv("COINWATCH_MAX_RETRY_DELAY"), 8.0),
            request_timeout=parse_float(os.getenv("COINWATCH_REQUEST_TIMEOUT"), 30.0),
            resource_timeout=parse_float(os.getenv("COINWATCH_RESOURCE_TIMEOUT"), 120.0),
            cache_max_entries=parse_int(os.getenv("COINWATCH_CACHE_MAX_ENTRIES"), 100),
            cache_max_bytes=parse_int(os.getenv("COINWATCH_CACHE_MAX_BYTES"), 10 * 1024 * 1024),
            page_size=parse_int(os.getenv("COINWATCH_PAGE_SIZE"), 50),
            store_path=os.getenv("COINWATCH_STORE_PATH", "").strip(),
        )

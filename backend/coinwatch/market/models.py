"""Data models for market data."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _to_float(value: Any) -> float | None:
    """Parse a numeric field that the API may send as a string, number, or null."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True, eq=False)
class Coin:
    """Immutable market snapshot of a single coin.

    Identity is the provider's ``nameid``: two snapshots with the same nameid
    are the same coin even if the numeric ``id`` drifted between responses.
    """

    id: str
    nameid: str
    symbol: str
    name: str
    price_usd: float
    market_cap_usd: float | None = None
    rank: int | None = None
    percent_change_24h: float | None = None
    volume_24h: float | None = None
    circulating_supply: float | None = None
    total_supply: float | None = None
    max_supply: float | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Coin):
            return NotImplemented
        return self.nameid == other.nameid

    def __hash__(self) -> int:
        return hash(self.nameid)

    @classmethod
    def from_ticker(cls, ticker: dict[str, Any]) -> Coin:
        """Build a Coin from one entry of the ticker API payload.

        Raises KeyError/TypeError when required identity fields are missing;
        the client turns those into DecodingError.
        """
        coin_id = str(ticker["id"])
        nameid = str(ticker.get("nameid") or "") or coin_id
        return cls(
            id=coin_id,
            nameid=nameid,
            symbol=str(ticker["symbol"]).upper(),
            name=str(ticker["name"]),
            price_usd=_to_float(ticker.get("price_usd")) or 0.0,
            market_cap_usd=_to_float(ticker.get("market_cap_usd")),
            rank=_to_int(ticker.get("rank")),
            percent_change_24h=_to_float(ticker.get("percent_change_24h")),
            volume_24h=_to_float(ticker.get("volume24")),
            circulating_supply=_to_float(ticker.get("csupply")),
            total_supply=_to_float(ticker.get("tsupply")),
            max_supply=_to_float(ticker.get("msupply")),
        )

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat' over the last 24h."""
        change = self.percent_change_24h or 0.0
        if change > 0:
            return "up"
        elif change < 0:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "id": self.id,
            "nameid": self.nameid,
            "symbol": self.symbol,
            "name": self.name,
            "price_usd": self.price_usd,
            "market_cap_usd": self.market_cap_usd,
            "rank": self.rank,
            "percent_change_24h": self.percent_change_24h,
            "volume_24h": self.volume_24h,
            "direction": self.direction,
        }


@dataclass(frozen=True, slots=True)
class CoinPage:
    """One page of the ticker listing plus the provider's total coin count."""

    coins: list[Coin] = field(default_factory=list)
    total_count: int = 0

"""Market data subsystem for CoinWatch.

Public API:
    Coin                  - Immutable coin snapshot (identity = nameid)
    PricingClient         - Cached, rate-limited, retrying market data client
    ResponseCache         - Thread-safe bounded response cache
    RateLimiter           - Fixed-window request quota
    ReachabilityMonitor   - Push-driven network availability flag
    CurrencyConverter     - USD to display currency conversion
    FavoritesStore        - Persisted favorite nameids
    PreferencesStore      - Persisted user preferences
    ListController        - Reactive list state for the view layer
    create_market_services - Factory that wires every service together
    create_stream_router  - FastAPI router factory for SSE endpoint
"""

from .cache import ResponseCache
from .client import PricingClient
from .controller import ListController, Tab
from .currency import CurrencyConverter
from .errors import PricingError
from .factory import MarketServices, create_market_services
from .favorites import FavoritesStore
from .models import Coin, CoinPage
from .preferences import CurrencyPreference, PreferencesStore, RefreshInterval, SortPreference
from .rate_limiter import RateLimiter
from .reachability import ReachabilityMonitor
from .stream import create_stream_router

__all__ = [
    "Coin",
    "CoinPage",
    "PricingClient",
    "PricingError",
    "ResponseCache",
    "RateLimiter",
    "ReachabilityMonitor",
    "CurrencyConverter",
    "CurrencyPreference",
    "RefreshInterval",
    "SortPreference",
    "FavoritesStore",
    "PreferencesStore",
    "ListController",
    "Tab",
    "MarketServices",
    "create_market_services",
    "create_stream_router",
]

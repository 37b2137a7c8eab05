"""Static exchange rates and reference prices for currency conversion."""

# Approximate units of each currency per 1 USD. Used until the first
# successful refresh, and for any currency the remote table leaves out.
STATIC_EXCHANGE_RATES: dict[str, float] = {
    "eur": 0.85,
    "gbp": 0.73,
    "jpy": 110.0,
    "cad": 1.25,
    "aud": 1.35,
    "chf": 0.92,
    "cny": 6.45,
    "nok": 8.5,
    "sek": 8.8,
    "dkk": 6.3,
    "pln": 3.9,
    "czk": 21.5,
    "huf": 295.0,
    "ron": 4.2,
    "bgn": 1.66,
    "hrk": 6.4,
    "rsd": 100.0,
    "isk": 125.0,
    "try": 8.5,
    "rub": 75.0,
    "uah": 27.0,
}

# USD price of each crypto display currency. Deliberately static: crypto
# denominated output is approximate and does not track the market.
CRYPTO_REFERENCE_PRICES_USD: dict[str, float] = {
    "btc": 45000.0,
    "eth": 3000.0,
    "bnb": 300.0,
    "ada": 0.5,
    "dot": 7.0,
    "sol": 100.0,
}

# Two mirrors of the same document: {"date": "...", "usd": {"eur": 0.92, ...}}
PRIMARY_RATES_URL = (
    "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@latest/v1/currencies/usd.json"
)
FALLBACK_RATES_URL = "https://latest.currency-api.pages.dev/v1/currencies/usd.json"

RATES_REFRESH_INTERVAL = 3600.0  # seconds

"""Classified failures raised by the pricing client."""

from __future__ import annotations


class PricingError(Exception):
    """Base class for every client-observed market data failure."""

    retryable: bool = False
    user_message: str = "Something went wrong. Please try again."


class InvalidRequest(PricingError):
    """Malformed URL or parameters. A programming error, never retried."""

    user_message = "Invalid request. Please try again."


class NetworkUnavailable(PricingError):
    """The network path is down. Raised before any request is attempted."""

    user_message = "No internet connection. Please check your network and try again."


class RateLimitExceeded(PricingError):
    """Local quota exhausted, or the server answered 429.

    Only a server 429 that told us when to come back (Retry-After) is retried;
    the local quota always fails fast.
    """

    user_message = "Too many requests. Please wait a moment before trying again."

    def __init__(
        self,
        retry_after: float,
        *,
        from_server: bool = False,
        retryable: bool = False,
    ) -> None:
        self.retry_after = retry_after
        self.from_server = from_server
        self.retryable = retryable
        source = "server" if from_server else "local quota"
        super().__init__(f"Rate limit exceeded ({source}), retry after {retry_after:.1f}s")


class Unauthorized(PricingError):
    """HTTP 401."""

    user_message = "Access denied."


class Forbidden(PricingError):
    """HTTP 403."""

    user_message = "Access denied."


class ServerError(PricingError):
    """HTTP 5xx. Retried with backoff."""

    retryable = True
    user_message = "Server is temporarily unavailable. Please try again later."

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Server error: HTTP {status_code}")


class DecodingError(PricingError):
    """The response did not match the expected shape."""

    user_message = "Invalid response from server. Please try again."


class GenericNetworkError(PricingError):
    """Transport failure: DNS, TLS, connection reset, timeout."""

    retryable = True

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Network error: {self}"

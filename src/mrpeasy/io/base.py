"""Shared configuration and endpoints for the sync and async clients."""

from typing import Any, Callable

from ..core.request import Request, RequestOption, build_request


DEFAULT_API_BASE_URL = "https://api.mrpeasy.com/rest/v1/"
DEFAULT_TIMEOUT = 10.0          # seconds, per call
DEFAULT_CHUNK_SIZE = 64 * 1024  # bytes copied per write into a Raw sink

# List endpoints, relative to the base URL
PATH_CUSTOMERS = "customers"
PATH_CUSTOMER_ORDERS = "customer-orders"
PATH_SHIPMENTS = "shipments"
PATH_STOCK_ITEMS = "items"


class BaseClient:
    """Credentials and request building common to both transports.

    Holds no per-call state, so one instance may serve concurrent calls.
    """

    def __init__(self, api_key: str, api_secret: str, *,
                 base_url: str = DEFAULT_API_BASE_URL,
                 timeout: float = DEFAULT_TIMEOUT):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url
        self.timeout = timeout

    def new_request(self, method: str, path: str, body: Any = None,
                    *options: RequestOption) -> Request:
        """Build an authenticated request for ``path`` (relative to the base URL)."""
        return build_request(method, path, body, *options,
                             base_url=self.base_url,
                             api_key=self.api_key,
                             api_secret=self.api_secret)

    def _call_timeout(self, ctx) -> float:
        if ctx is None:
            return self.timeout
        remaining = ctx.remaining()
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)


def page_converter(convert: Callable[[Any], Any] | None) -> Callable[[Any], list]:
    """Converter for one page of a list endpoint: a JSON array, item by item."""
    def _convert(data: Any) -> list:
        if data is None:
            return []       # "null" page
        if not isinstance(data, list):
            raise TypeError(f"expected a JSON array, got {type(data).__name__}")
        if convert is None:
            return data
        return [convert(item) for item in data]
    return _convert

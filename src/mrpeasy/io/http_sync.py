"""Synchronous MRPeasy client using requests."""

import logging
from typing import Any, Callable, Optional

import requests

from ..core.context import Context
from ..core.cursor import parse_cursor
from ..core.model import (
    APIError, BodyReadError, Response, TransportError, is_success,
)
from ..core.request import Request, with_range_from
from ..core.target import DecodeTarget, Raw, Typed, decode_json, write_chunk
from ..models import Customer, CustomerOrder, Shipment, StockItem
from .base import (
    BaseClient, DEFAULT_API_BASE_URL, DEFAULT_CHUNK_SIZE, DEFAULT_TIMEOUT,
    PATH_CUSTOMERS, PATH_CUSTOMER_ORDERS, PATH_SHIPMENTS, PATH_STOCK_ITEMS,
    page_converter,
)

logger = logging.getLogger(__name__)


def _cancelled(ctx: Optional[Context]):
    return ctx.error() if ctx is not None else None


class Client(BaseClient):
    """Blocking MRPeasy client.

    Cancellation is checked before every request and between body chunks; a
    request already waiting on the server is bounded by the call timeout,
    which shrinks to the context's deadline.
    """

    def __init__(self, api_key: str, api_secret: str, *,
                 base_url: str = DEFAULT_API_BASE_URL,
                 timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        super().__init__(api_key, api_secret, base_url=base_url, timeout=timeout)
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()

    def do(self, request: Request, target: Optional[DecodeTarget] = None, *,
           ctx: Optional[Context] = None) -> Response:
        """Send ``request`` and decode the body into ``target``.

        Raises APIError for non-2xx responses (``err.response`` keeps the
        status and headers) and PaginationHeaderError when a 2xx response has
        no usable Content-Range.
        """
        if (err := _cancelled(ctx)) is not None:
            raise err

        prepared = requests.Request(
            request.method, request.url, data=request.body, headers=dict(request.headers),
        ).prepare()

        logger.debug("%s %s", request.method, request.url)
        try:
            resp = self._session.send(prepared, stream=True, timeout=self._call_timeout(ctx))
        except requests.RequestException as e:
            # A cancelled context explains the failure better than the socket does
            if (err := _cancelled(ctx)) is not None:
                raise err from e
            raise TransportError(f"{request.method} {request.url}: {e}") from e

        with resp:
            if (err := _cancelled(ctx)) is not None:
                raise err
            envelope = Response(resp)
            if not is_success(resp.status_code):
                raise APIError(envelope)
            envelope.cursor = parse_cursor(resp.headers)
            self._read_body(resp, target, ctx)
            if (err := _cancelled(ctx)) is not None:
                raise err
        return envelope

    def _chunks(self, resp: requests.Response, ctx: Optional[Context]):
        """Yield body chunks, stopping as soon as the context is cancelled."""
        try:
            for chunk in resp.iter_content(chunk_size=DEFAULT_CHUNK_SIZE):
                if (err := _cancelled(ctx)) is not None:
                    raise err
                yield chunk
        except (requests.RequestException, OSError) as e:
            if (err := _cancelled(ctx)) is not None:
                raise err from e
            raise BodyReadError(f"could not read response body: {e}") from e

    def _read_body(self, resp: requests.Response, target: Optional[DecodeTarget],
                   ctx: Optional[Context]) -> None:
        if target is None:
            return

        if isinstance(target, Raw):
            for chunk in self._chunks(resp, ctx):
                write_chunk(target, chunk)
            return

        if not isinstance(target, Typed):
            raise TypeError(f"unsupported decode target: {type(target).__name__}")
        body = bytearray()
        for chunk in self._chunks(resp, ctx):
            body += chunk
        decode_json(target, bytes(body))

    def fetch_all(self, path: str, convert: Optional[Callable[[Any], Any]] = None, *,
                  ctx: Optional[Context] = None) -> list:
        """GET every page of a list endpoint, in order. Any error aborts the fetch."""
        result: list = []
        options = []
        while True:
            page = Typed(page_converter(convert))
            response = self.do(self.new_request("GET", path, None, *options), page, ctx=ctx)
            if page.value is not None:
                result.extend(page.value)
            logger.debug("%s: %d of %d items", path, len(result), response.cursor.total_items)

            if not response.has_next():
                return result
            options = [with_range_from(response.next())]

    def list_customers(self, *, ctx: Optional[Context] = None) -> list[Customer]:
        return self.fetch_all(PATH_CUSTOMERS, Customer.from_dict, ctx=ctx)

    def list_customer_orders(self, *, ctx: Optional[Context] = None) -> list[CustomerOrder]:
        return self.fetch_all(PATH_CUSTOMER_ORDERS, CustomerOrder.from_dict, ctx=ctx)

    def list_shipments(self, *, ctx: Optional[Context] = None) -> list[Shipment]:
        return self.fetch_all(PATH_SHIPMENTS, Shipment.from_dict, ctx=ctx)

    def list_stock_items(self, *, ctx: Optional[Context] = None) -> list[StockItem]:
        return self.fetch_all(PATH_STOCK_ITEMS, StockItem.from_dict, ctx=ctx)

    def close(self):
        """Close the session if this client created it."""
        if self._owns_session:
            self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def open_client(api_key: str, api_secret: str, **kwargs) -> Client:
    """Create a synchronous MRPeasy client."""
    return Client(api_key, api_secret, **kwargs)

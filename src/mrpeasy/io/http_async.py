"""Asynchronous MRPeasy client using httpx."""

import asyncio
import contextlib
import logging
from typing import Any, Callable, Coroutine, Optional, TypeVar

import httpx

from ..core.context import Context, DEADLINE_EXCEEDED
from ..core.cursor import parse_cursor
from ..core.model import (
    APIError, BodyReadError, CancellationError, MRPeasyError, Response, TransportError,
    is_success,
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

T = TypeVar("T")


async def _bind(ctx: Optional[Context], exchange: Coroutine[Any, Any, T]) -> T:
    """Run ``exchange`` until it finishes or ``ctx`` is cancelled or expires."""
    if ctx is None:
        return await exchange
    if (err := ctx.error()) is not None:
        exchange.close()        # never started
        raise err

    loop = asyncio.get_running_loop()
    cancelled = loop.create_future()

    def _wake():
        # ctx.cancel() may run on another thread
        loop.call_soon_threadsafe(lambda: cancelled.done() or cancelled.set_result(None))

    unregister = ctx.on_cancel(_wake)
    task = asyncio.ensure_future(exchange)
    try:
        done, _ = await asyncio.wait({task, cancelled}, timeout=ctx.remaining(),
                                     return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        unregister()
        cancelled.cancel()

    if task in done:
        return task.result()

    task.cancel()
    # Whatever the exchange raises while being torn down, cancellation wins.
    with contextlib.suppress(asyncio.CancelledError, MRPeasyError):
        await task
    raise ctx.error() or CancellationError(DEADLINE_EXCEEDED)


class AsyncClient(BaseClient):
    """Asyncio MRPeasy client. Cancelling the context aborts the in-flight request."""

    def __init__(self, api_key: str, api_secret: str, *,
                 base_url: str = DEFAULT_API_BASE_URL,
                 timeout: float = DEFAULT_TIMEOUT,
                 client: Optional[httpx.AsyncClient] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(api_key, api_secret, base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._client = client

    async def do(self, request: Request, target: Optional[DecodeTarget] = None, *,
                 ctx: Optional[Context] = None) -> Response:
        """Send ``request`` and decode the body into ``target``.

        Raises APIError for non-2xx responses (``err.response`` keeps the
        status and headers) and PaginationHeaderError when a 2xx response has
        no usable Content-Range.
        """
        return await _bind(ctx, self._exchange(request, target, ctx))

    async def _exchange(self, request: Request, target: Optional[DecodeTarget],
                        ctx: Optional[Context]) -> Response:
        req = self._client.build_request(
            request.method, request.url, content=request.body,
            headers=dict(request.headers), timeout=self._call_timeout(ctx),
        )

        logger.debug("%s %s", request.method, request.url)
        try:
            resp = await self._client.send(req, stream=True)
        except httpx.TransportError as e:
            if ctx is not None and (err := ctx.error()) is not None:
                raise err from e
            raise TransportError(f"{request.method} {request.url}: {e}") from e

        try:
            envelope = Response(resp)
            if not is_success(resp.status_code):
                raise APIError(envelope)
            envelope.cursor = parse_cursor(resp.headers)
            await self._read_body(resp, target)
        finally:
            await resp.aclose()
        return envelope

    async def _read_body(self, resp: httpx.Response, target: Optional[DecodeTarget]) -> None:
        if target is None:
            return

        if isinstance(target, Raw):
            try:
                async for chunk in resp.aiter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
                    write_chunk(target, chunk)
            except (httpx.HTTPError, httpx.StreamError, OSError) as e:
                raise BodyReadError(f"could not copy response body to sink: {e}") from e
            return

        if not isinstance(target, Typed):
            raise TypeError(f"unsupported decode target: {type(target).__name__}")
        try:
            body = await resp.aread()
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise BodyReadError(f"could not read response body: {e}") from e
        decode_json(target, body)

    async def fetch_all(self, path: str, convert: Optional[Callable[[Any], Any]] = None, *,
                        ctx: Optional[Context] = None) -> list:
        """GET every page of a list endpoint, in order. Any error aborts the fetch."""
        result: list = []
        options = []
        while True:
            page = Typed(page_converter(convert))
            response = await self.do(self.new_request("GET", path, None, *options), page, ctx=ctx)
            if page.value is not None:
                result.extend(page.value)
            logger.debug("%s: %d of %d items", path, len(result), response.cursor.total_items)

            if not response.has_next():
                return result
            options = [with_range_from(response.next())]

    async def list_customers(self, *, ctx: Optional[Context] = None) -> list[Customer]:
        return await self.fetch_all(PATH_CUSTOMERS, Customer.from_dict, ctx=ctx)

    async def list_customer_orders(self, *, ctx: Optional[Context] = None) -> list[CustomerOrder]:
        return await self.fetch_all(PATH_CUSTOMER_ORDERS, CustomerOrder.from_dict, ctx=ctx)

    async def list_shipments(self, *, ctx: Optional[Context] = None) -> list[Shipment]:
        return await self.fetch_all(PATH_SHIPMENTS, Shipment.from_dict, ctx=ctx)

    async def list_stock_items(self, *, ctx: Optional[Context] = None) -> list[StockItem]:
        return await self.fetch_all(PATH_STOCK_ITEMS, StockItem.from_dict, ctx=ctx)

    async def aclose(self):
        """Close the httpx client if this client created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()


async def open_client_async(api_key: str, api_secret: str, **kwargs) -> AsyncClient:
    """Create an asynchronous MRPeasy client."""
    return AsyncClient(api_key, api_secret, **kwargs)

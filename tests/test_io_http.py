"""Tests for the HTTP clients."""

import asyncio
import base64
import io
import json
import threading
import time

import httpx
import pytest
from pytest_httpserver import HTTPServer
from werkzeug import Request, Response

from mrpeasy import (
    APIError, AsyncClient, BodyReadError, CancellationError, Client, Context,
    Customer, DecodingError, PaginationHeaderError, Raw, TransportError, Typed,
)
from mrpeasy.core.context import DEADLINE_EXCEEDED
from mrpeasy.io.base import DEFAULT_CHUNK_SIZE

AUTH = "Basic " + base64.b64encode(b"key:secret").decode()
TOTAL = 250


def _page_for(range_header):
    """Serve 250 items as 0-99, 99-199, 199-249; the start offset is exclusive."""
    if range_header is None:
        first, last, items = 0, 99, range(0, 100)
    elif range_header == "items=99":
        first, last, items = 99, 199, range(100, 200)
    elif range_header == "items=199":
        first, last, items = 199, 249, range(200, 250)
    else:
        raise AssertionError(f"unexpected Range: {range_header}")
    body = [{"customer_id": str(i), "title": f"Customer {i}"} for i in items]
    return body, f"{first}-{last}/{TOTAL}"


class TestClient:
    """Test the synchronous requests client."""

    def setup_method(self):
        """Set up test HTTP server."""
        self.seen = []
        self.ctx = None
        self.server = HTTPServer(host="127.0.0.1", port=0)
        self.server.expect_request("/rest/v1/customers").respond_with_handler(self._handle_pages)
        self.server.expect_request("/rest/v1/echo").respond_with_handler(self._handle_echo)
        self.server.expect_request("/rest/v1/missing").respond_with_data(
            "not json at all", status=404, headers={"Content-Range": "0-0/1"})
        self.server.expect_request("/rest/v1/empty").respond_with_data(
            "", status=200, headers={"Content-Range": "0-0/0"})
        self.server.expect_request("/rest/v1/no-range").respond_with_data(
            "[]", status=200, content_type="application/json")
        self.server.expect_request("/rest/v1/bad-json").respond_with_data(
            "[{", status=200, headers={"Content-Range": "0-0/1"})
        self.server.expect_request("/rest/v1/never-ending").respond_with_handler(self._handle_cancel_on_second)
        self.server.expect_request("/rest/v1/slow-body").respond_with_handler(self._handle_slow_body)
        self.server.expect_request("/rest/v1/null-page").respond_with_data(
            "null", status=200, headers={"Content-Range": "0-0/0"})
        self.server.start()
        self.base_url = f"http://127.0.0.1:{self.server.port}/rest/v1/"
        self.client = Client("key", "secret", base_url=self.base_url)

    def teardown_method(self):
        """Clean up test HTTP server."""
        self.client.close()
        self.server.stop()

    def _handle_pages(self, request: Request) -> Response:
        self.seen.append(dict(request.headers))
        body, content_range = _page_for(request.headers.get("Range"))
        return Response(json.dumps(body), status=200, headers={"Content-Range": content_range},
                        content_type="application/json")

    def _handle_echo(self, request: Request) -> Response:
        self.seen.append(dict(request.headers))
        payload = {"method": request.method, "body": request.get_data(as_text=True)}
        return Response(json.dumps(payload), status=200, headers={"Content-Range": "0-0/1"})

    def _handle_cancel_on_second(self, request: Request) -> Response:
        self.seen.append(dict(request.headers))
        if len(self.seen) == 2:
            self.ctx.cancel()
        start = len(self.seen) * 10
        return Response("[1, 2]", status=200, headers={"Content-Range": f"{start}-{start + 1}/1000000"})

    def _handle_slow_body(self, request: Request) -> Response:
        def body():
            for _ in range(20):
                time.sleep(0.2)
                yield b" " * DEFAULT_CHUNK_SIZE

        return Response(body(), status=200, headers={"Content-Range": "0-0/1"})

    def test_fetch_all_three_pages(self):
        """250 items arrive in order over three sequential requests."""
        items = self.client.fetch_all("customers")

        assert len(items) == TOTAL
        assert [item["customer_id"] for item in items] == [str(i) for i in range(TOTAL)]
        assert [h.get("Range") for h in self.seen] == [None, "items=99", "items=199"]

    def test_list_customers(self):
        customers = self.client.list_customers()
        assert len(customers) == TOTAL
        assert isinstance(customers[0], Customer)
        assert customers[-1].title == "Customer 249"

    def test_every_request_is_authenticated(self):
        self.client.fetch_all("customers")
        assert all(h["Authorization"] == AUTH for h in self.seen)

    def test_get_has_no_content_type(self):
        self.client.do(self.client.new_request("GET", "echo"), Typed())
        assert "Content-Type" not in self.seen[0]

    def test_post_has_json_body(self):
        target = Typed()
        self.client.do(self.client.new_request("POST", "echo", {"code": "C-1"}), target)
        assert self.seen[0]["Content-Type"] == "application/json"
        assert self.seen[0]["Authorization"] == AUTH
        assert target.value["method"] == "POST"
        assert json.loads(target.value["body"]) == {"code": "C-1"}

    def test_api_error_skips_decoding(self):
        """A 404 raises APIError and leaves the target alone."""
        target = Typed()
        with pytest.raises(APIError) as exc_info:
            self.client.do(self.client.new_request("GET", "missing"), target)

        err = exc_info.value
        assert err.status_code == 404
        assert "404" in str(err)
        assert err.response.cursor is None
        assert err.response.headers["Content-Range"] == "0-0/1"
        assert target.value is None

    def test_empty_body(self):
        """An empty 2xx body leaves the target at its zero value."""
        target = Typed()
        resp = self.client.do(self.client.new_request("GET", "empty"), target)
        assert target.value is None
        assert resp.status_code == 200
        assert not resp.has_next()

    def test_missing_content_range(self):
        with pytest.raises(PaginationHeaderError):
            self.client.do(self.client.new_request("GET", "no-range"), Typed())

    def test_decoding_error(self):
        with pytest.raises(DecodingError):
            self.client.do(self.client.new_request("GET", "bad-json"), Typed())

    def test_raw_sink(self):
        """Raw targets receive the body byte for byte."""
        sink = io.BytesIO()
        resp = self.client.do(self.client.new_request("GET", "customers"), Raw(sink))
        body, _ = _page_for(None)
        assert json.loads(sink.getvalue()) == body
        assert resp.cursor.last_item == 99

    def test_raw_sink_failure(self):
        sink = io.BytesIO()
        sink.close()
        with pytest.raises(BodyReadError):
            self.client.do(self.client.new_request("GET", "customers"), Raw(sink))

    def test_text_sink_is_a_body_read_error(self):
        """A sink that rejects bytes fails as a body read, not a TypeError."""
        with pytest.raises(BodyReadError):
            self.client.do(self.client.new_request("GET", "customers"), Raw(io.StringIO()))

    def test_null_page_is_empty(self):
        assert self.client.fetch_all("null-page") == []

    def test_no_target_reads_nothing(self):
        resp = self.client.do(self.client.new_request("GET", "customers"))
        assert resp.cursor.total_items == TOTAL

    def test_cancel_mid_fetch(self):
        """Cancelling during page two stops the fetch before page three."""
        self.ctx = Context()
        with pytest.raises(CancellationError):
            self.client.fetch_all("never-ending", ctx=self.ctx)
        assert len(self.seen) == 2

    @pytest.mark.parametrize("target", [Raw(io.BytesIO()), Typed()], ids=["raw", "typed"])
    def test_cancel_while_streaming_body(self, target):
        """A cancel during a slow body stops the read at the next chunk."""
        ctx = Context()
        timer = threading.Timer(0.3, ctx.cancel)
        timer.start()
        start = time.monotonic()
        try:
            with pytest.raises(CancellationError):
                self.client.do(self.client.new_request("GET", "slow-body"), target, ctx=ctx)
        finally:
            timer.cancel()
        assert time.monotonic() - start < 3

    def test_expired_context_sends_nothing(self):
        with pytest.raises(CancellationError) as exc_info:
            self.client.fetch_all("customers", ctx=Context.with_timeout(0))
        assert exc_info.value.reason == DEADLINE_EXCEEDED
        assert self.seen == []

    def test_context_manager(self):
        with Client("key", "secret", base_url=self.base_url) as client:
            assert len(client.fetch_all("customers")) == TOTAL

    def test_transport_error(self):
        client = Client("key", "secret", base_url="http://127.0.0.1:1/")
        with pytest.raises(TransportError):
            client.do(client.new_request("GET", "customers"))
        client.close()


def _mock_pages(calls):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        body, content_range = _page_for(request.headers.get("Range"))
        return httpx.Response(200, json=body, headers={"Content-Range": content_range})
    return handler


class TestAsyncClient:
    """Test the asynchronous httpx client."""

    @pytest.mark.asyncio
    async def test_fetch_all_three_pages(self):
        calls = []
        async with AsyncClient("key", "secret", transport=httpx.MockTransport(_mock_pages(calls))) as client:
            items = await client.fetch_all("customers")

        assert [item["customer_id"] for item in items] == [str(i) for i in range(TOTAL)]
        assert [r.headers.get("Range") for r in calls] == [None, "items=99", "items=199"]
        assert all(r.headers["Authorization"] == AUTH for r in calls)
        assert str(calls[0].url) == "https://api.mrpeasy.com/rest/v1/customers"

    @pytest.mark.asyncio
    async def test_list_customers(self):
        calls = []
        async with AsyncClient("key", "secret", transport=httpx.MockTransport(_mock_pages(calls))) as client:
            customers = await client.list_customers()
        assert len(customers) == TOTAL
        assert customers[0].customer_id == "0"

    @pytest.mark.asyncio
    async def test_content_type_only_with_body(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=b"", headers={"Content-Range": "0-0/1"})

        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            await client.do(client.new_request("GET", "customers"), Typed())
            await client.do(client.new_request("POST", "customers", {"title": "ACME"}), Typed())

        assert "Content-Type" not in calls[0].headers
        assert calls[1].headers["Content-Type"] == "application/json"
        assert json.loads(calls[1].content) == {"title": "ACME"}

    @pytest.mark.asyncio
    async def test_api_error(self):
        def handler(request):
            return httpx.Response(404, content=b"{broken")

        target = Typed()
        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(APIError) as exc_info:
                await client.do(client.new_request("GET", "customers/9"), target)

        assert exc_info.value.status == "404 Not Found"
        assert exc_info.value.response.cursor is None
        assert target.value is None

    @pytest.mark.asyncio
    async def test_empty_body(self):
        def handler(request):
            return httpx.Response(204, headers={"Content-Range": "0-0/1"})

        target = Typed()
        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            resp = await client.do(client.new_request("DELETE", "customers/1"), target)
        assert resp.status_code == 204
        assert target.value is None

    @pytest.mark.asyncio
    async def test_missing_content_range(self):
        def handler(request):
            return httpx.Response(200, json={"customer_id": "1"})

        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(PaginationHeaderError):
                await client.do(client.new_request("GET", "customers/1"), Typed())

    @pytest.mark.asyncio
    async def test_decoding_error(self):
        def handler(request):
            return httpx.Response(200, content=b"{nope", headers={"Content-Range": "0-0/1"})

        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(DecodingError):
                await client.do(client.new_request("GET", "customers"), Typed())

    @pytest.mark.asyncio
    async def test_raw_sink(self):
        def handler(request):
            return httpx.Response(200, content=b"\x00raw bytes\xff", headers={"Content-Range": "0-0/1"})

        sink = io.BytesIO()
        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            await client.do(client.new_request("GET", "export"), Raw(sink))
        assert sink.getvalue() == b"\x00raw bytes\xff"

    @pytest.mark.asyncio
    async def test_text_sink_is_a_body_read_error(self):
        def handler(request):
            return httpx.Response(200, content=b"[]", headers={"Content-Range": "0-0/1"})

        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(BodyReadError):
                await client.do(client.new_request("GET", "export"), Raw(io.StringIO()))

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(TransportError):
                await client.do(client.new_request("GET", "customers"))

    @pytest.mark.asyncio
    async def test_transport_error_after_cancel_reports_cancellation(self):
        ctx = Context()

        def handler(request):
            ctx.cancel()
            raise httpx.ConnectError("connection reset", request=request)

        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CancellationError):
                await client.do(client.new_request("GET", "customers"), ctx=ctx)

    @pytest.mark.asyncio
    async def test_cancel_aborts_in_flight_request(self):
        """Cancelling mid-fetch returns promptly instead of finishing the pages."""
        ctx = Context()
        calls = []

        async def handler(request):
            calls.append(request)
            if len(calls) == 2:
                asyncio.get_running_loop().call_later(0.05, ctx.cancel)
                await asyncio.sleep(30)
            body, content_range = _page_for(request.headers.get("Range"))
            return httpx.Response(200, json=body, headers={"Content-Range": content_range})

        started = time.monotonic()
        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CancellationError):
                await client.fetch_all("customers", ctx=ctx)

        assert time.monotonic() - started < 5
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_deadline(self):
        async def handler(request):
            await asyncio.sleep(30)
            return httpx.Response(200, json=[], headers={"Content-Range": "0-0/1"})

        async with AsyncClient("key", "secret", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CancellationError) as exc_info:
                await client.fetch_all("customers", ctx=Context.with_timeout(0.1))
        assert exc_info.value.reason == DEADLINE_EXCEEDED

    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_a_client(self):
        calls = []
        async with AsyncClient("key", "secret", transport=httpx.MockTransport(_mock_pages(calls))) as client:
            first, second = await asyncio.gather(client.fetch_all("customers"), client.fetch_all("customers"))
        assert first == second
        assert len(first) == TOTAL
        assert len(calls) == 6

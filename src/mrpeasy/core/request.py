"""Authenticated request construction."""

from __future__ import annotations
import base64
import json
import warnings
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Mapping
from urllib.parse import urljoin, urlsplit

from .model import EncodingError, UrlResolutionError
from .util import json_default

HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_RANGE = "Range"
CONTENT_TYPE_JSON = "application/json"


@dataclass(frozen=True, slots=True)
class Request:
    """A fully formed outbound request. Never mutated once built."""
    method: str
    url: str
    body: bytes | None = None
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def with_header(self, name: str, value: str) -> Request:
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=MappingProxyType(headers))


RequestOption = Callable[[Request], Request]


@dataclass(frozen=True, slots=True)
class ItemRange:
    """Range option: items from ``start`` onwards, or ``start`` through ``end``."""
    start: int
    end: int | None = None

    @property
    def header_value(self) -> str:
        if self.end is None:
            return f"items={self.start}"
        return f"items={self.start}-{self.end}"

    def __call__(self, request: Request) -> Request:
        return request.with_header(HEADER_RANGE, self.header_value)


def with_range_from(start: int) -> ItemRange:
    """Request a server-sized page of items starting after ``start``."""
    return ItemRange(start)


def with_range_from_to(start: int, end: int) -> ItemRange:
    """Request the items between ``start`` and ``end``."""
    return ItemRange(start, end)


def basic_auth(api_key: str, api_secret: str) -> str:
    token = base64.b64encode(f"{api_key}:{api_secret}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def resolve_url(base_url: str, path: str) -> str:
    """Join ``path`` onto ``base_url``, failing on anything that is not an http(s) URL."""
    try:
        url = urljoin(base_url, path)
        parts = urlsplit(url)
    except (ValueError, TypeError) as e:
        raise UrlResolutionError(f"cannot resolve {path!r} against {base_url!r}: {e}") from e
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise UrlResolutionError(f"cannot resolve {path!r} against {base_url!r}")
    return url


def encode_body(body: Any) -> bytes:
    try:
        return json.dumps(body, default=json_default).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodingError(f"cannot encode request body: {e}") from e


def build_request(
    method: str,
    path: str,
    body: Any = None,
    *options: RequestOption,
    base_url: str,
    api_key: str,
    api_secret: str,
) -> Request:
    url = resolve_url(base_url, path)

    headers = {HEADER_AUTHORIZATION: basic_auth(api_key, api_secret)}
    payload = None
    if body is not None:
        payload = encode_body(body)
        headers[HEADER_CONTENT_TYPE] = CONTENT_TYPE_JSON

    request = Request(method=method.upper(), url=url, body=payload,
                      headers=MappingProxyType(headers))

    # Options run last and may replace any header set above.
    for option in options:
        request = option(request)

    if request.headers.get(HEADER_AUTHORIZATION) != headers[HEADER_AUTHORIZATION]:
        warnings.warn("A request option replaced the Authorization header")
    return request

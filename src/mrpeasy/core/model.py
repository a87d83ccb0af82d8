from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Mapping, TYPE_CHECKING

if TYPE_CHECKING:
    from .cursor import Cursor


class MRPeasyError(RuntimeError):
    """Base class for every error raised by the client."""


class UrlResolutionError(MRPeasyError):
    """Raised when a path cannot be resolved against the API base URL."""


class EncodingError(MRPeasyError):
    """Raised when a request body cannot be serialized to JSON."""


class TransportError(MRPeasyError):
    """Raised when the request could not be delivered or answered."""


class CancellationError(MRPeasyError):
    """Raised when the caller's context was cancelled or ran past its deadline."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PaginationHeaderError(MRPeasyError):
    """Raised when a successful response has a missing or malformed Content-Range."""


class BodyReadError(MRPeasyError):
    """Raised when a response body cannot be copied into a byte sink."""


class DecodingError(MRPeasyError):
    """Raised when a non-empty response body is not valid JSON for the target."""


class APIError(MRPeasyError):
    """Raised for any response outside the 2xx range.

    ``response`` holds the envelope for the failed exchange; only its status
    and headers are meaningful, and its cursor is always ``None``.
    """

    def __init__(self, response: Response):
        super().__init__(f"response: {response.status}")
        self.response = response
        self.status_code = response.status_code
        self.status = response.status


@dataclass(slots=True)
class Response:
    """Envelope around a transport response and the cursor derived from it."""
    raw: Any                      # requests.Response or httpx.Response
    cursor: Cursor | None = None

    @property
    def status_code(self) -> int:
        return self.raw.status_code

    @property
    def status(self) -> str:
        reason = getattr(self.raw, "reason", None)           # requests
        if reason is None:
            reason = getattr(self.raw, "reason_phrase", "")  # httpx
        return f"{self.status_code} {reason}".rstrip()

    @property
    def headers(self) -> Mapping[str, str]:
        return self.raw.headers

    def has_next(self) -> bool:
        return self.cursor is not None and self.cursor.has_next()

    def next(self) -> int:
        """Offset to request the following page from."""
        if self.cursor is None:
            raise PaginationHeaderError("response carries no pagination cursor")
        return self.cursor.next_offset


def is_success(status_code: int) -> bool:
    return 200 <= status_code <= 299

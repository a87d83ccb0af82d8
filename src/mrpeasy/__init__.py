"""mrpeasy - A typed python client for the paginated MRPeasy REST API."""

from .core.context import Context                                      # cancellation
from .core.cursor import Cursor, parse_cursor
from .core.model import (                                              # re-export
    MRPeasyError, UrlResolutionError, EncodingError, TransportError,
    CancellationError, APIError, PaginationHeaderError, BodyReadError,
    DecodingError, Response,
)
from .core.request import Request, ItemRange, with_range_from, with_range_from_to
from .core.target import Raw, Typed
from .io import Client, AsyncClient, open_client, open_client_async
from .models import (
    Customer, CustomerOrder, Shipment, StockItem,
)


__all__ = [
    "Client", "AsyncClient", "open_client", "open_client_async",
    "Context", "Cursor", "parse_cursor", "Response",
    "Request", "ItemRange", "with_range_from", "with_range_from_to",
    "Raw", "Typed",
    "Customer", "CustomerOrder", "Shipment", "StockItem",
    "MRPeasyError", "UrlResolutionError", "EncodingError", "TransportError",
    "CancellationError", "APIError", "PaginationHeaderError", "BodyReadError",
    "DecodingError",
]

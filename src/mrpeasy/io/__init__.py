"""Transport layer for mrpeasy - a requests client and an httpx client with identical semantics."""

# Re-export these for import convenience
from .base import (
    BaseClient, DEFAULT_API_BASE_URL, DEFAULT_CHUNK_SIZE, DEFAULT_TIMEOUT,
)
from .http_sync import Client, open_client
from .http_async import AsyncClient, open_client_async

"""CLI implementation for mrpeasy."""

import asyncio
import json
import sys
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from .core.context import Context
from .core.model import MRPeasyError
from .core.target import Raw
from .core.util import json_default
from .io import AsyncClient, Client, DEFAULT_API_BASE_URL, DEFAULT_TIMEOUT
from .io.base import PATH_CUSTOMERS, PATH_CUSTOMER_ORDERS, PATH_SHIPMENTS, PATH_STOCK_ITEMS
from .models import Customer, CustomerOrder, Shipment, StockItem

app = typer.Typer(add_completion=False, help="Fetch records from the MRPeasy REST API.")


class Resource(str, Enum):
    customers = "customers"
    customer_orders = "customer-orders"
    shipments = "shipments"
    items = "items"


_ENDPOINTS = {
    Resource.customers: (PATH_CUSTOMERS, Customer.from_dict),
    Resource.customer_orders: (PATH_CUSTOMER_ORDERS, CustomerOrder.from_dict),
    Resource.shipments: (PATH_SHIPMENTS, Shipment.from_dict),
    Resource.items: (PATH_STOCK_ITEMS, StockItem.from_dict),
}


def _fetch_sync(client: Client, resource: Resource, raw_sink, ctx: Context):
    path, convert = _ENDPOINTS[resource]
    if raw_sink is not None:
        client.do(client.new_request("GET", path), Raw(raw_sink), ctx=ctx)
        return None
    return client.fetch_all(path, convert, ctx=ctx)


async def _fetch_async(client: AsyncClient, resource: Resource, raw_sink, ctx: Context):
    path, convert = _ENDPOINTS[resource]
    async with client:
        if raw_sink is not None:
            await client.do(client.new_request("GET", path), Raw(raw_sink), ctx=ctx)
            return None
        return await client.fetch_all(path, convert, ctx=ctx)


@app.command()
def main(
    resource: Resource = typer.Argument(..., help="List endpoint to fetch"),
    api_key: str = typer.Option(..., "--api-key", envvar="MRPEASY_API_KEY", help="API key"),
    api_secret: str = typer.Option(..., "--api-secret", envvar="MRPEASY_API_SECRET", help="API secret"),
    raw: bool = typer.Option(False, "--raw", help="Write the first page's body unchanged"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to PATH instead of stdout"),
    sync: bool = typer.Option(False, "--sync", help="Force synchronous I/O"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0, help="Give up after N seconds overall"),
    base_url: str = typer.Option(DEFAULT_API_BASE_URL, "--base-url", help="API base URL"),
):
    """Fetch every page of RESOURCE and print it as JSON."""
    ctx = Context.with_timeout(timeout) if timeout is not None else Context()

    # open output sink
    if raw:
        sink = open(output, "wb") if output else sys.stdout.buffer
    else:
        sink = open(output, "w", encoding="utf-8") if output else sys.stdout
    try:
        raw_sink = sink if raw else None
        if sync:
            with Client(api_key, api_secret, base_url=base_url, timeout=DEFAULT_TIMEOUT) as client:
                records = _fetch_sync(client, resource, raw_sink, ctx)
        else:
            client = AsyncClient(api_key, api_secret, base_url=base_url, timeout=DEFAULT_TIMEOUT)
            records = asyncio.run(_fetch_async(client, resource, raw_sink, ctx))

        if records is not None:
            json.dump(records, sink, indent=2, default=json_default)
            sink.write("\n")
    except MRPeasyError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        if output:
            sink.close()
        else:
            sink.flush()


if __name__ == "__main__":
    app()

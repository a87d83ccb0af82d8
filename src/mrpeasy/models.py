"""Record shapes returned by the MRPeasy list endpoints.

Records are plain slotted dataclasses. ``from_dict`` ignores keys it does not
know and leaves missing ones at their defaults, so API additions never break
decoding. Timestamps arrive as quoted epoch seconds and become UTC datetimes.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Callable, Mapping

from .core.util import epoch_to_datetime


def _f(default: Any = None, *, key: str | None = None,
       convert: Callable[[Any], Any] | None = None,
       factory: Callable[[], Any] | None = None):
    """Dataclass field with an optional JSON key override and converter."""
    metadata = {}
    if key is not None:
        metadata["key"] = key
    if convert is not None:
        metadata["convert"] = convert
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


class Record:
    __slots__ = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        if not isinstance(data, Mapping):
            raise TypeError(f"{cls.__name__}: expected a JSON object, got {type(data).__name__}")
        kwargs = {}
        for f in fields(cls):
            key = f.metadata.get("key", f.name)
            if key not in data:
                continue
            value = data[key]
            convert = f.metadata.get("convert")
            if convert is not None and value is not None:
                value = convert(value)
            kwargs[f.name] = value
        return cls(**kwargs)

    @classmethod
    def list_from(cls, data: list | None) -> list:
        return [cls.from_dict(item) for item in data or []]


# --- shipments ---

@dataclass(slots=True)
class Product(Record):
    article_id: str = ""
    product_id: str = ""
    item_code: str = ""
    item_title: str = ""
    lot_id: str = ""
    lot_code: str = ""
    lot_status: str = ""
    site_id: str = ""
    site: str = ""
    location_id: str = ""
    location: str = ""
    quantity_picked: int = 0
    quantity_booked: int = 0
    unit_id: str = ""
    unit: str = ""
    expiry_date: str = ""
    lot_status_txt: str = ""


@dataclass(slots=True)
class Order(Record):
    customer_order_id: str = ""
    customer_order_code: str = ""


@dataclass(slots=True)
class Shipment(Record):
    shipment_id: str = ""
    code: str = ""
    created: datetime | None = _f(convert=epoch_to_datetime)
    status: str = ""
    customer_order_id: str = ""
    customer_order_code: str = ""
    rma_order_id: str = ""
    rma_order_code: str = ""
    purchase_order_id: str = ""
    purchase_order_code: str = ""
    waybill_notes: str = ""
    packing_notes: str = ""
    tracking_number: str = ""
    shipping_address: str = ""
    status_txt: str = ""
    products: list[Product] = _f(factory=list, convert=Product.list_from)
    orders: list[Order] = _f(factory=list, convert=Order.list_from)


# --- stock items ---

@dataclass(slots=True)
class PurchaseTerms(Record):
    vendor_id: str = ""
    vendor_code: str = ""
    vendor_title: str = ""
    vendor_product_code: str = ""
    priority: float = 0.0
    lead_time: str = ""
    unit: str = ""
    unit_rate: float = 0.0
    min_quantity: float = 0.0
    vendor_min_quantity: float = 0.0
    price: float = 0.0
    currency_price: float = 0.0
    currency: str = ""


@dataclass(slots=True)
class Parameter(Record):
    parameter_id: str = ""
    ord: str = ""
    title: str = ""


@dataclass(slots=True)
class StockItem(Record):
    article_id: str = ""
    product_id: str = ""
    code: str = ""
    title: str = ""
    unit_id: str | None = None
    group_id: str | None = None
    group_code: str = ""
    group_title: str = ""
    is_raw: bool = False
    # selling_price is a number, a list or null depending on the item; kept as sent
    selling_price: Any = None
    avg_cost: float | None = None
    in_stock: float = 0.0
    available: float = 0.0
    booked: float = 0.0
    expected_total: float = 0.0
    expected_available: float = 0.0
    expected_booked: float = 0.0
    min_quantity: str = ""
    icon: str = ""
    deleted: bool = False
    purchase_terms: list[PurchaseTerms] = _f(factory=list, convert=PurchaseTerms.list_from)
    parameters: list[Parameter] = _f(factory=list, convert=Parameter.list_from)


# --- customer orders ---

@dataclass(slots=True)
class StockLot(Record):
    lot_id: str = ""
    lot_code: str = ""
    lot_status: str = ""
    lot_status_txt: str = ""
    man_ord_id: str = ""
    manufacturing_order_code: str = ""
    manufacturing_order_status: str = ""
    manufacturing_order_status_txt: str = ""
    pur_ord_id: str = ""
    purchase_order_code: str = ""
    purchase_order_status: str = ""
    purchase_order_status_txt: str = ""


@dataclass(slots=True)
class CustomerOrderProduct(Record):
    line_id: str = ""
    ord: str = ""
    article_id: str = ""
    description: str = ""
    quantity: float = 0.0
    shipped: float = 0.0
    # the API spells this key "delviery_date"
    delivery_date: datetime | None = _f(key="delviery_date", convert=epoch_to_datetime)
    item_price: float = 0.0
    item_price_cur: float = 0.0
    total_price: float = 0.0
    total_price_cur: float = 0.0
    discount_rate: float = 0.0
    discount_rate_cur: float = 0.0
    cost: float = 0.0
    profit: float = 0.0
    part_status: str = ""
    part_status_txt: str = ""
    source: list[StockLot] = _f(factory=list, convert=StockLot.list_from)


@dataclass(slots=True)
class CustomerOrder(Record):
    customer_order_id: str = _f("", key="cust_ord_id")
    code: str = ""
    reference: str = ""
    customer_id: str = ""
    customer_code: str = ""
    customer_name: str = ""
    pricelist_id: int = 0
    pricelist_code: str = ""
    pricelist_title: str = ""
    shipping_address_id: str = ""
    shipping_address: Any = None        # string or object
    status: str = ""
    status_txt: str = ""
    part_status: str = ""
    part_status_txt: str = ""
    invoice_status: str = ""
    invoice_status_txt: str = ""
    payment_status: str = ""
    payment_status_txt: str = ""
    created: datetime | None = _f(convert=epoch_to_datetime)
    delivery_date: datetime | None = _f(convert=epoch_to_datetime)
    actual_delivery_date: datetime | None = _f(convert=epoch_to_datetime)
    currency: str = ""
    currency_rate: float = 0.0
    total_price: float = 0.0
    total_price_cur: float = 0.0
    total_cost: float = 0.0
    profit: float = 0.0
    discount_rate: float = 0.0
    discount_sum: float = 0.0
    discount_sum_cur: float = 0.0
    notes: str = ""
    delivery_terms: str = ""
    products: list[CustomerOrderProduct] = _f(factory=list, convert=CustomerOrderProduct.list_from)


# --- customers ---

@dataclass(slots=True)
class ContactDetails(Record):
    line_id: str = ""
    type: str = ""
    value: Any = None       # string or object


@dataclass(slots=True)
class Customer(Record):
    customer_id: str = ""
    code: str = ""
    title: str = ""
    reg_nr: str = ""
    tax_nr: str = ""
    created: datetime | None = _f(convert=epoch_to_datetime)
    next_contact: datetime | None = _f(convert=epoch_to_datetime)
    status: str = ""
    payment_period: int = 0
    user_id: str = ""
    language_id: str = ""
    contact_data: list[ContactDetails] = _f(factory=list, convert=ContactDetails.list_from)

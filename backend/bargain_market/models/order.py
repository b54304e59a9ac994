"""
Cart and order domain models.

WHAT: Cart lines, priced lines and frozen order snapshots
WHY: Typed hand-off from the cart pricing resolver to the order materializer
HOW: Pydantic v2 models, order views built from ORM rows
"""

from pydantic import BaseModel, Field
from typing import Any
from datetime import datetime

from ..core.models import OrderStatus, PaymentMethod, PaymentStatus
from .bargain import PriceSource


class CartLine(BaseModel):
    """A product and the quantity the buyer wants."""

    product_id: str = Field(min_length=1, max_length=100)
    quantity: int = Field(ge=1)


class PricedLine(BaseModel):
    """Cart line with its effective unit price."""

    product_id: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(gt=0.0)
    price_source: PriceSource
    source_thread_id: str | None = None

    @property
    def line_total(self) -> float:
        return self.quantity * self.unit_price


class OrderItemView(BaseModel):
    """Frozen order line."""

    product_id: str
    seller_id: str
    quantity: int
    unit_price_at_purchase: float
    price_source: PriceSource
    bargain_thread_id: str | None = None

    model_config = {"from_attributes": True}


class OrderView(BaseModel):
    """Immutable order snapshot plus its mutable lifecycle and payment state."""

    order_id: str
    order_number: str
    buyer_id: str
    items: list[OrderItemView]
    linked_bargain_thread_id: str | None = None
    total_amount: float
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    payment_reference: str | None = None
    payment_amount: float | None = None
    paid_at: datetime | None = None
    shipping_address: dict[str, Any] | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

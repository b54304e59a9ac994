"""
Pydantic API schemas for the REST endpoints.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization for the frontend
HOW: Pydantic v2 models with validators and constraints
"""

from typing import Optional, List, Literal, Any, Dict
from pydantic import BaseModel, Field, field_validator

from ..core.config import settings
from ..core.models import OrderStatus, PaymentMethod, PaymentStatus
from .bargain import BargainThreadView
from .order import CartLine, PricedLine


# ========== Bargain Requests ==========

class CreateBargainRequest(BaseModel):
    """Buyer opens a negotiation."""
    product_id: str = Field(..., min_length=1, max_length=100, description="Product ID")
    proposed_price: float = Field(..., gt=0, description="Offered price per unit")
    message: Optional[str] = Field(default=None, max_length=1000, description="Optional note to the seller")


class PriceActionRequest(BaseModel):
    """Revised offer or counter-offer."""
    amount: float = Field(..., gt=0, description="Proposed price per unit")
    message: Optional[str] = Field(default=None, max_length=1000)


class RejectRequest(BaseModel):
    message: Optional[str] = Field(default=None, max_length=1000)


class MessageRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000, description="Message content")

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be blank")
        return v.strip()


# ========== Bargain Responses ==========

class BargainListResponse(BaseModel):
    threads: List[BargainThreadView]
    total: int


class ResolvedPriceResponse(BaseModel):
    product_id: str
    buyer_id: str
    resolved_price: Optional[float] = None
    source_thread_id: Optional[str] = None


# ========== Cart ==========

class AddCartItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(default=1, ge=1, le=1000)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=1000)


class CartResponse(BaseModel):
    """Cart lines with resolved prices."""
    buyer_id: str
    items: List[PricedLine]
    total_amount: float
    item_count: int


# ========== Orders ==========

class ShippingAddress(BaseModel):
    street: str = Field(default="", max_length=200)
    city: str = Field(default="", max_length=100)
    state: str = Field(default="", max_length=100)
    zip_code: str = Field(default="", max_length=20)
    country: str = Field(default="Nepal", max_length=100)
    phone_number: str = Field(default="", max_length=30)


class CreateOrderRequest(BaseModel):
    """
    Checkout request.

    When ``items`` is omitted the stored cart is checked out and emptied.
    """
    items: Optional[List[CartLine]] = Field(default=None, description="Explicit lines, bypassing the stored cart")
    bargain_thread_id: Optional[str] = Field(default=None, description="Bargain to link to the order")
    payment_method: PaymentMethod = Field(default_factory=lambda: PaymentMethod(settings.DEFAULT_PAYMENT_METHOD))
    shipping_address: Optional[ShippingAddress] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    def address_dict(self) -> Optional[Dict[str, Any]]:
        return self.shipping_address.model_dump() if self.shipping_address else None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus


class PaymentMethodRequest(BaseModel):
    payment_method: PaymentMethod


class RecordPaymentRequest(BaseModel):
    payment_status: PaymentStatus
    reference_id: Optional[str] = Field(default=None, max_length=100)
    amount: Optional[float] = Field(default=None, ge=0)


# ========== Status ==========

class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    version: str
    app_name: str
    components: Dict[str, Any]

"""
Negotiation domain models.

WHAT: Actors, thread views and notification events for the bargain workflow
WHY: Consistent typing between the engine, the store and the API layer
HOW: Pydantic v2 models built from ORM rows with from_attributes
"""

from pydantic import BaseModel, Field
from typing import Literal
from datetime import datetime
import enum

from ..core.models import BargainStatus, NotificationType, utcnow


class ActorRole(str, enum.Enum):
    """Role the caller claims for a request."""
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class Actor(BaseModel):
    """Authenticated caller, supplied by the identity provider and trusted."""

    user_id: str = Field(min_length=1, max_length=100)
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


class BargainMessageEntry(BaseModel):
    """One entry of a thread's message log."""

    sequence: int = Field(ge=0)
    sender_id: str
    text: str
    sent_at: datetime

    model_config = {"from_attributes": True}


class BargainThreadView(BaseModel):
    """Read-only snapshot of a bargain thread."""

    thread_id: str
    buyer_id: str
    product_id: str
    seller_id: str
    catalog_price: float
    current_offer: float
    counter_offer: float | None = None
    accepted_price: float | None = None
    status: BargainStatus
    messages: list[BargainMessageEntry] = Field(default_factory=list)
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class ResolvedPriceEntry(BaseModel):
    """Pricing ledger entry for a (buyer, product) pair."""

    buyer_id: str
    product_id: str
    price: float = Field(gt=0.0)
    source_thread_id: str
    resolved_at: datetime

    model_config = {"from_attributes": True}


class NotificationEvent(BaseModel):
    """Event emitted by the negotiation engine after a committed transition."""

    thread_id: str
    type: NotificationType
    recipient_id: str
    sender_id: str
    product_id: str
    amount: float | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def describe(self) -> str:
        """Human readable line for inbox storage."""
        amount = f" of {self.amount:.2f}" if self.amount is not None else ""
        templates: dict[NotificationType, str] = {
            NotificationType.OFFER: f"New offer{amount} on product {self.product_id}",
            NotificationType.COUNTER: f"Seller countered{amount} on product {self.product_id}",
            NotificationType.ACCEPTED: f"Bargain accepted{amount} on product {self.product_id}",
            NotificationType.REJECTED: f"Bargain rejected on product {self.product_id}",
        }
        return templates[self.type]


PriceSource = Literal["bargain", "catalog"]

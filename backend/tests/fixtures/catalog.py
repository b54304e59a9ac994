"""
Test doubles for the negotiation collaborators.

WHAT: In-memory product catalog and a dispatcher that records events
WHY: Test the engine, resolver and materializer without a products table
HOW: Implement the ProductCatalog and NotificationDispatcher protocols
"""

from dataclasses import dataclass
from typing import Dict, List

from bargain_market.models.bargain import NotificationEvent
from bargain_market.services.notifications import NotificationDeliveryError
from bargain_market.utils.exceptions import NotFoundException


@dataclass
class FakeProduct:
    price: float
    stock: int
    owner_id: str


class FakeCatalog:
    """
    Dictionary-backed catalog.

    Prices and stock can be changed mid-test to simulate catalog updates.
    """

    def __init__(self):
        self.products: Dict[str, FakeProduct] = {}

    def add(self, product_id: str, price: float, stock: int = 10, owner_id: str = "seller_1") -> None:
        self.products[product_id] = FakeProduct(price=price, stock=stock, owner_id=owner_id)

    def _get(self, product_id: str) -> FakeProduct:
        try:
            return self.products[product_id]
        except KeyError:
            raise NotFoundException("Product", product_id)

    def get_catalog_price(self, product_id: str) -> float:
        return self._get(product_id).price

    def get_stock(self, product_id: str) -> int:
        return self._get(product_id).stock

    def get_owner(self, product_id: str) -> str:
        return self._get(product_id).owner_id


class RecordingDispatcher:
    """Keeps every event it is asked to deliver; can be told to fail."""

    def __init__(self, should_fail: bool = False):
        self.events: List[NotificationEvent] = []
        self.should_fail = should_fail

    def notify(self, event: NotificationEvent) -> None:
        if self.should_fail:
            raise NotificationDeliveryError("Mock dispatcher failure")
        self.events.append(event)

    @property
    def types(self) -> List[str]:
        return [e.type.value for e in self.events]

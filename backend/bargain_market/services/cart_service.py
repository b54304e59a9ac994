"""
Cart service.

WHAT: Stored cart lines per buyer and checkout
WHY: Carts persist between requests; checkout hands them to the materializer
HOW: CRUD over cart_items, one transaction per call; checkout orders and
     deletes the lines it read in the same transaction
"""

from typing import Any, Dict, List, Optional

from ..core.database import get_db
from ..core.models import CartItem, PaymentMethod
from ..models.order import CartLine, OrderView
from .catalog import ProductCatalog, get_catalog
from .order_materializer import OrderMaterializer
from ..utils.exceptions import ConcurrentModificationException, NotFoundException, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CartService:
    """Buyer cart operations."""

    def __init__(
        self,
        catalog: ProductCatalog | None = None,
        materializer: OrderMaterializer | None = None
    ):
        self.catalog = catalog or get_catalog()
        self.materializer = materializer or OrderMaterializer(self.catalog)

    @staticmethod
    def _items(db, buyer_id: str) -> List[CartItem]:
        return (
            db.query(CartItem)
            .filter_by(buyer_id=buyer_id)
            .order_by(CartItem.added_at, CartItem.id)
            .all()
        )

    def _lines(self, db, buyer_id: str) -> List[CartLine]:
        return [CartLine(product_id=i.product_id, quantity=i.quantity) for i in self._items(db, buyer_id)]

    def get_lines(self, buyer_id: str) -> List[CartLine]:
        with get_db() as db:
            return self._lines(db, buyer_id)

    def add_item(self, buyer_id: str, product_id: str, quantity: int = 1) -> List[CartLine]:
        """Add units of a product, merging with an existing line."""
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1")
        # Unknown products raise NotFoundException here
        self.catalog.get_catalog_price(product_id)

        with get_db() as db:
            item = db.query(CartItem).filter_by(buyer_id=buyer_id, product_id=product_id).first()
            if item:
                item.quantity += quantity
            else:
                db.add(CartItem(buyer_id=buyer_id, product_id=product_id, quantity=quantity))
            db.flush()
            return self._lines(db, buyer_id)

    def set_quantity(self, buyer_id: str, product_id: str, quantity: int) -> List[CartLine]:
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1")

        with get_db() as db:
            item = db.query(CartItem).filter_by(buyer_id=buyer_id, product_id=product_id).first()
            if item is None:
                raise NotFoundException("Cart item", product_id)
            item.quantity = quantity
            db.flush()
            return self._lines(db, buyer_id)

    def remove_item(self, buyer_id: str, product_id: str) -> List[CartLine]:
        with get_db() as db:
            item = db.query(CartItem).filter_by(buyer_id=buyer_id, product_id=product_id).first()
            if item is None:
                raise NotFoundException("Cart item", product_id)
            db.delete(item)
            db.flush()
            return self._lines(db, buyer_id)

    def clear(self, buyer_id: str) -> int:
        """Empty the cart. Returns the number of removed lines."""
        with get_db() as db:
            removed = db.query(CartItem).filter_by(buyer_id=buyer_id).delete()
        logger.info(f"Cleared {removed} cart lines for {buyer_id}")
        return removed

    def checkout(
        self,
        buyer_id: str,
        payment_method: PaymentMethod = PaymentMethod.COD,
        shipping_address: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        linked_thread_id: Optional[str] = None
    ) -> OrderView:
        """
        Materialize the stored cart into an order and remove the ordered lines.

        The lines are read, ordered and deleted in one transaction. Only the
        rows that were read are deleted, so a line added meanwhile stays in the
        cart, and a second checkout of the same lines fails instead of ordering
        them twice.

        Raises:
            EmptyCartException: the cart has no lines
            ConcurrentModificationException: the lines were checked out or changed meanwhile
        """
        with get_db() as db:
            items = self._items(db, buyer_id)
            order = self.materializer.materialize(
                buyer_id,
                [CartLine(product_id=i.product_id, quantity=i.quantity) for i in items],
                linked_thread_id=linked_thread_id,
                payment_method=payment_method,
                shipping_address=shipping_address,
                notes=notes,
                db=db
            )

            for item in items:
                removed = (
                    db.query(CartItem)
                    .filter_by(id=item.id, quantity=item.quantity)
                    .delete(synchronize_session=False)
                )
                if removed != 1:
                    raise ConcurrentModificationException(f"cart:{buyer_id}")

        logger.info(f"Checked out {len(items)} cart lines for {buyer_id} into {order.order_number}")
        return order

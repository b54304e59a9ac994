"""
Order materializer.

WHAT: Turn cart lines into an immutable order snapshot
WHY: The price a buyer pays is fixed at checkout, whatever the ledger does later
HOW: Check stock against the catalog, price the cart once, copy the prices
     verbatim into Order/OrderItem rows in a single transaction
"""

from collections import Counter
from typing import Any, Dict, Optional, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.models import (
    BargainStatus, BargainThread, Order, OrderItem, OrderStatus, PaymentMethod, utcnow,
)
from ..models.order import CartLine, OrderView
from .cart_pricing import CartPricingResolver
from .catalog import ProductCatalog, get_catalog
from ..utils.exceptions import (
    EmptyCartException,
    InsufficientStockException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def generate_order_number() -> str:
    """Human readable order number, e.g. ORD-261018-3FA85F64."""
    return f"ORD-{utcnow():%y%m%d}-{uuid4().hex[:8].upper()}"


class OrderMaterializer:
    """Freeze resolved cart prices into orders."""

    def __init__(
        self,
        catalog: ProductCatalog | None = None,
        resolver: CartPricingResolver | None = None
    ):
        self.catalog = catalog or get_catalog()
        self.resolver = resolver or CartPricingResolver(self.catalog)

    def _check_stock(self, lines: Sequence[CartLine]) -> Dict[str, str]:
        """Verify stock for every product; returns each product's seller."""
        requested = Counter()
        for line in lines:
            requested[line.product_id] += line.quantity

        sellers = {}
        for product_id, quantity in requested.items():
            available = self.catalog.get_stock(product_id)
            if quantity > available:
                raise InsufficientStockException(product_id, quantity, available)
            sellers[product_id] = self.catalog.get_owner(product_id)
        return sellers

    @staticmethod
    def _check_link(db: Session, buyer_id: str, thread_id: str, lines: Sequence[CartLine]) -> None:
        thread = db.get(BargainThread, thread_id)
        if thread is None:
            raise NotFoundException("Bargain", thread_id)
        if thread.buyer_id != buyer_id:
            raise UnauthorizedException(buyer_id, "link a bargain", "bargain belongs to another buyer")
        if thread.status != BargainStatus.ACCEPTED:
            raise ValidationException(
                f"Only accepted bargains can be linked, status is {thread.status.value}",
                [{"field": "linked_thread_id", "message": "bargain is not accepted"}]
            )
        if thread.product_id not in {line.product_id for line in lines}:
            raise ValidationException(
                f"Bargain {thread_id} is for {thread.product_id}, which is not in this order",
                [{"field": "linked_thread_id", "message": "bargain product is not ordered"}]
            )

    def materialize(
        self,
        buyer_id: str,
        lines: Sequence[CartLine],
        linked_thread_id: Optional[str] = None,
        payment_method: PaymentMethod = PaymentMethod.COD,
        shipping_address: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
        db: Session | None = None
    ) -> OrderView:
        """
        Create a pending order from the buyer's lines.

        Args:
            buyer_id: Buyer placing the order
            lines: Cart lines to purchase
            linked_thread_id: Accepted bargain to link; defaults to the first bargained line's thread
            payment_method: cod, esewa or khalti
            shipping_address: Free-form address fields
            notes: Buyer notes
            db: Session to write the order in; a new transaction is used when omitted

        Returns:
            OrderView of the stored order

        Raises:
            EmptyCartException: no lines
            InsufficientStockException: a product lacks stock for the requested quantity
            NotFoundException: unknown product or linked bargain
            UnauthorizedException: linked bargain belongs to another buyer
            ValidationException: linked bargain is not accepted or its product is not ordered
        """
        if db is None:
            with get_db() as session:
                return self.materialize(
                    buyer_id,
                    lines,
                    linked_thread_id=linked_thread_id,
                    payment_method=payment_method,
                    shipping_address=shipping_address,
                    notes=notes,
                    db=session
                )

        if not lines:
            raise EmptyCartException(buyer_id)

        sellers = self._check_stock(lines)
        priced = self.resolver.price_cart(buyer_id, lines, db=db)

        if linked_thread_id:
            self._check_link(db, buyer_id, linked_thread_id, lines)
        else:
            linked_thread_id = next(
                (p.source_thread_id for p in priced if p.source_thread_id), None
            )

        total_amount = sum(p.quantity * p.unit_price for p in priced)

        order = Order(
            order_number=generate_order_number(),
            buyer_id=buyer_id,
            status=OrderStatus.PENDING,
            total_amount=total_amount,
            linked_bargain_thread_id=linked_thread_id,
            payment_method=payment_method,
            shipping_address=shipping_address,
            notes=notes,
            created_at=utcnow(),
            items=[
                OrderItem(
                    product_id=p.product_id,
                    seller_id=sellers[p.product_id],
                    quantity=p.quantity,
                    unit_price_at_purchase=p.unit_price,
                    price_source=p.price_source,
                    bargain_thread_id=p.source_thread_id
                )
                for p in priced
            ]
        )
        db.add(order)
        db.flush()
        view = OrderView.model_validate(order)

        logger.info(
            f"Materialized order {view.order_number} for {buyer_id}: "
            f"{len(view.items)} items, total={view.total_amount:.2f}, bargain={linked_thread_id}"
        )
        return view

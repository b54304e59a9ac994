"""
Order service.

WHAT: Order reads, lifecycle transitions and payment bookkeeping
WHY: Orders outlive checkout; admins and sellers move them to delivery
HOW: Allowed-transition table for status, role checks per action; the frozen
     item prices and total are never touched here
"""

from typing import Dict, List, Optional, Set

from ..core.database import get_db
from ..core.models import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus, utcnow
from ..models.bargain import Actor, ActorRole
from ..models.order import OrderView
from ..utils.exceptions import (
    InvalidStatusTransitionException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


ALLOWED_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderService:
    """Order lifecycle on top of materialized orders."""

    @staticmethod
    def _sells_in(seller_id: str, order: Order) -> bool:
        return any(item.seller_id == seller_id for item in order.items)

    def _can_view(self, actor: Actor, order: Order) -> bool:
        if actor.is_admin:
            return True
        if actor.role == ActorRole.BUYER:
            return order.buyer_id == actor.user_id
        return self._sells_in(actor.user_id, order)

    @staticmethod
    def _load(db, order_id: str) -> Order:
        order = db.get(Order, order_id)
        if order is None:
            raise NotFoundException("Order", order_id)
        return order

    def get_order(self, actor: Actor, order_id: str) -> OrderView:
        with get_db() as db:
            order = self._load(db, order_id)
            if not self._can_view(actor, order):
                raise UnauthorizedException(actor.user_id, "view this order")
            return OrderView.model_validate(order)

    def list_orders(self, actor: Actor) -> List[OrderView]:
        """Buyers see their orders, sellers orders containing their products, admins all."""
        with get_db() as db:
            query = db.query(Order).order_by(Order.created_at.desc())
            if actor.role == ActorRole.BUYER:
                query = query.filter(Order.buyer_id == actor.user_id)
            elif actor.role == ActorRole.SELLER:
                query = query.filter(Order.items.any(OrderItem.seller_id == actor.user_id))
            return [OrderView.model_validate(o) for o in query.all()]

    def update_status(self, actor: Actor, order_id: str, new_status: OrderStatus) -> OrderView:
        """
        Move an order along its lifecycle.

        Admins and sellers of an item may make any allowed move; the buyer may
        only cancel a pending order.

        Raises:
            InvalidStatusTransitionException: move not allowed from the current status
        """
        with get_db() as db:
            order = self._load(db, order_id)

            if actor.role == ActorRole.BUYER:
                allowed = (
                    order.buyer_id == actor.user_id
                    and new_status == OrderStatus.CANCELLED
                    and order.status == OrderStatus.PENDING
                )
                if not allowed:
                    raise UnauthorizedException(actor.user_id, f"set order status to {new_status.value}")
            elif actor.role == ActorRole.SELLER and not self._sells_in(actor.user_id, order):
                raise UnauthorizedException(actor.user_id, "update this order")

            if new_status not in ALLOWED_TRANSITIONS[order.status]:
                raise InvalidStatusTransitionException(order_id, order.status.value, new_status.value)

            previous = order.status
            order.status = new_status
            db.flush()
            logger.info(f"Order {order.order_number}: {previous.value} -> {new_status.value} by {actor.user_id}")
            return OrderView.model_validate(order)

    def select_payment_method(self, actor: Actor, order_id: str, method: PaymentMethod) -> OrderView:
        with get_db() as db:
            order = self._load(db, order_id)
            if actor.role != ActorRole.BUYER or order.buyer_id != actor.user_id:
                raise UnauthorizedException(actor.user_id, "change the payment method")
            if order.payment_status == PaymentStatus.COMPLETED:
                raise ValidationException("Payment already completed for this order")
            if order.status == OrderStatus.CANCELLED:
                raise ValidationException("Order is cancelled")

            order.payment_method = method
            db.flush()
            return OrderView.model_validate(order)

    def record_payment(
        self,
        actor: Actor,
        order_id: str,
        payment_status: PaymentStatus,
        reference_id: Optional[str] = None,
        amount: Optional[float] = None
    ) -> OrderView:
        """
        Record the outcome reported by a payment gateway or the courier (cod).

        Gateway signature verification is done upstream; this only stores the result.
        """
        if not actor.is_admin:
            raise UnauthorizedException(actor.user_id, "record a payment", "requires role admin")
        if amount is not None and amount < 0:
            raise ValidationException("Payment amount must not be negative")

        with get_db() as db:
            order = self._load(db, order_id)
            if order.payment_status == PaymentStatus.COMPLETED:
                raise ValidationException("Payment already completed for this order")

            order.payment_status = payment_status
            if reference_id:
                order.payment_reference = reference_id
            if payment_status == PaymentStatus.COMPLETED:
                order.payment_amount = amount if amount is not None else order.total_amount
                order.paid_at = utcnow()
            db.flush()
            logger.info(
                f"Order {order.order_number}: payment {payment_status.value} "
                f"via {order.payment_method.value} (ref={reference_id})"
            )
            return OrderView.model_validate(order)

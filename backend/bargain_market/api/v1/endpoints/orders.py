"""
Order endpoints.

WHAT: Checkout, order reads, status updates and payment bookkeeping
WHY: Orders freeze the prices the buyer saw at checkout
HOW: Checkout goes through the order materializer (explicit lines) or the
     cart service (stored cart); lifecycle changes through OrderService
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ....models.api_schemas import (
    CreateOrderRequest,
    PaymentMethodRequest,
    RecordPaymentRequest,
    UpdateOrderStatusRequest,
)
from ....models.bargain import Actor
from ....models.order import OrderView
from ....services.cart_service import CartService
from ....services.order_service import OrderService
from ...deps import get_actor, get_cart_service, get_order_service, require_buyer

router = APIRouter()


@router.post("/orders", response_model=OrderView, status_code=status.HTTP_201_CREATED)
def create_order(
    request: CreateOrderRequest,
    actor: Actor = Depends(require_buyer),
    carts: CartService = Depends(get_cart_service),
):
    """
    Place an order.

    With ``items`` the given lines are ordered and the stored cart is left
    alone; without them the stored cart is checked out and emptied.
    """
    if request.items is not None:
        return carts.materializer.materialize(
            actor.user_id,
            request.items,
            linked_thread_id=request.bargain_thread_id,
            payment_method=request.payment_method,
            shipping_address=request.address_dict(),
            notes=request.notes
        )

    return carts.checkout(
        actor.user_id,
        payment_method=request.payment_method,
        shipping_address=request.address_dict(),
        notes=request.notes,
        linked_thread_id=request.bargain_thread_id
    )


@router.get("/orders", response_model=List[OrderView])
def list_orders(
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_order_service),
):
    return orders.list_orders(actor)


@router.get("/orders/{order_id}", response_model=OrderView)
def get_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_order_service),
):
    return orders.get_order(actor, order_id)


@router.patch("/orders/{order_id}/status", response_model=OrderView)
def update_order_status(
    order_id: str,
    request: UpdateOrderStatusRequest,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_order_service),
):
    return orders.update_status(actor, order_id, request.status)


@router.patch("/orders/{order_id}/payment-method", response_model=OrderView)
def select_payment_method(
    order_id: str,
    request: PaymentMethodRequest,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_order_service),
):
    return orders.select_payment_method(actor, order_id, request.payment_method)


@router.post("/orders/{order_id}/payment", response_model=OrderView)
def record_payment(
    order_id: str,
    request: RecordPaymentRequest,
    actor: Actor = Depends(get_actor),
    orders: OrderService = Depends(get_order_service),
):
    """Store the outcome reported by the payment gateway or courier."""
    return orders.record_payment(
        actor,
        order_id,
        request.payment_status,
        reference_id=request.reference_id,
        amount=request.amount
    )

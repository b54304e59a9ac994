"""
Cart endpoints.

WHAT: Stored cart CRUD and the priced cart view
WHY: The buyer sees bargained prices applied before checkout
HOW: CartService for storage, CartPricingResolver for the priced view
"""

from typing import List

from fastapi import APIRouter, Depends

from ....models.api_schemas import AddCartItemRequest, CartResponse, UpdateCartItemRequest
from ....models.bargain import Actor
from ....models.order import CartLine
from ....services.cart_pricing import CartPricingResolver
from ....services.cart_service import CartService
from ...deps import get_cart_pricing, get_cart_service, require_buyer

router = APIRouter()


def _priced(buyer_id: str, lines: List[CartLine], pricing: CartPricingResolver) -> CartResponse:
    priced = pricing.price_cart(buyer_id, lines)
    return CartResponse(
        buyer_id=buyer_id,
        items=priced,
        total_amount=sum(p.line_total for p in priced),
        item_count=sum(p.quantity for p in priced)
    )


@router.get("/cart", response_model=CartResponse)
def get_cart(
    actor: Actor = Depends(require_buyer),
    carts: CartService = Depends(get_cart_service),
    pricing: CartPricingResolver = Depends(get_cart_pricing),
):
    """Cart with each line priced from the ledger, falling back to the catalog."""
    return _priced(actor.user_id, carts.get_lines(actor.user_id), pricing)


@router.post("/cart/items", response_model=CartResponse)
def add_cart_item(
    request: AddCartItemRequest,
    actor: Actor = Depends(require_buyer),
    carts: CartService = Depends(get_cart_service),
    pricing: CartPricingResolver = Depends(get_cart_pricing),
):
    lines = carts.add_item(actor.user_id, request.product_id, request.quantity)
    return _priced(actor.user_id, lines, pricing)


@router.put("/cart/items/{product_id}", response_model=CartResponse)
def update_cart_item(
    product_id: str,
    request: UpdateCartItemRequest,
    actor: Actor = Depends(require_buyer),
    carts: CartService = Depends(get_cart_service),
    pricing: CartPricingResolver = Depends(get_cart_pricing),
):
    lines = carts.set_quantity(actor.user_id, product_id, request.quantity)
    return _priced(actor.user_id, lines, pricing)


@router.delete("/cart/items/{product_id}", response_model=CartResponse)
def remove_cart_item(
    product_id: str,
    actor: Actor = Depends(require_buyer),
    carts: CartService = Depends(get_cart_service),
    pricing: CartPricingResolver = Depends(get_cart_pricing),
):
    lines = carts.remove_item(actor.user_id, product_id)
    return _priced(actor.user_id, lines, pricing)


@router.delete("/cart")
def clear_cart(
    actor: Actor = Depends(require_buyer),
    carts: CartService = Depends(get_cart_service),
):
    removed = carts.clear(actor.user_id)
    return {"buyer_id": actor.user_id, "removed": removed}

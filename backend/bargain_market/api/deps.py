"""
Request dependencies.

WHAT: Caller identity and service wiring for endpoints
WHY: The identity provider sits in front of this API; headers carry its verdict
HOW: FastAPI Header/Depends providers, overridable in tests
"""

from fastapi import Depends, Header

from ..models.bargain import Actor, ActorRole
from ..utils.exceptions import UnauthorizedException
from ..services.negotiation_engine import NegotiationEngine, get_engine
from ..services.cart_pricing import CartPricingResolver
from ..services.cart_service import CartService
from ..services.order_service import OrderService


def get_actor(
    x_user_id: str = Header(..., alias="X-User-Id", min_length=1, max_length=100),
    x_user_role: ActorRole = Header(..., alias="X-User-Role"),
) -> Actor:
    """Authenticated caller as asserted by the upstream identity provider."""
    return Actor(user_id=x_user_id, role=x_user_role)


def require_buyer(actor: Actor = Depends(get_actor)) -> Actor:
    """Carts belong to buyers only."""
    if actor.role != ActorRole.BUYER:
        raise UnauthorizedException(actor.user_id, "use a cart", "requires role buyer")
    return actor


def get_negotiation_engine() -> NegotiationEngine:
    return get_engine()


def get_cart_service() -> CartService:
    return CartService()


def get_cart_pricing() -> CartPricingResolver:
    return CartPricingResolver()


def get_order_service() -> OrderService:
    return OrderService()

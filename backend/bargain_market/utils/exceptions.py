"""
Custom business exceptions for the bargain marketplace.

WHAT: Domain-specific exceptions that map to HTTP status codes
WHY: Every core failure is a typed result scoped to one operation
HOW: Custom exception classes with error codes, messages and details
"""

from typing import Optional, List, Dict, Any


class BusinessException(Exception):
    """Base class for business logic exceptions."""

    def __init__(self, message: str, code: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class NotFoundException(BusinessException):
    """Raised when a thread, product or order does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code="NOT_FOUND",
            details={"entity": entity, "id": entity_id}
        )


class UnauthorizedException(BusinessException):
    """Raised when the actor's role does not permit the requested action."""

    def __init__(self, user_id: str, action: str, reason: str = ""):
        message = f"User {user_id} is not allowed to {action}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            details={"user_id": user_id, "action": action}
        )


class InvalidOfferException(BusinessException):
    """Raised when an offer or counter-offer is outside (0, catalog_price)."""

    def __init__(self, amount: float, catalog_price: float):
        super().__init__(
            message=f"Offer {amount} must be greater than 0 and less than catalog price {catalog_price}",
            code="INVALID_OFFER",
            details={"amount": amount, "catalog_price": catalog_price}
        )


class InvalidPriceException(BusinessException):
    """Raised when a resolved price is not strictly positive."""

    def __init__(self, price: float):
        super().__init__(
            message=f"Resolved price must be greater than 0, got {price}",
            code="INVALID_PRICE",
            details={"price": price}
        )


class DuplicateActiveThreadException(BusinessException):
    """Raised when an open negotiation already exists for a buyer/product pair."""

    def __init__(self, buyer_id: str, product_id: str, thread_id: Optional[str] = None):
        super().__init__(
            message=f"Buyer {buyer_id} already has an open bargain for product {product_id}",
            code="DUPLICATE_ACTIVE_THREAD",
            details={"buyer_id": buyer_id, "product_id": product_id, "thread_id": thread_id}
        )


class ThreadClosedException(BusinessException):
    """Raised when a transition is attempted on an accepted or rejected thread."""

    def __init__(self, thread_id: str, current_status: str):
        super().__init__(
            message=f"Bargain {thread_id} is closed. Current status: {current_status}",
            code="THREAD_CLOSED",
            details={"thread_id": thread_id, "current_status": current_status}
        )


class NothingToAcceptException(BusinessException):
    """Raised when the other party has not proposed a number yet."""

    def __init__(self, thread_id: str):
        super().__init__(
            message=f"Nothing to accept on bargain {thread_id}",
            code="NOTHING_TO_ACCEPT",
            details={"thread_id": thread_id}
        )


class ConcurrentModificationException(BusinessException):
    """Raised when another transition on the same negotiation won the race."""

    def __init__(self, key: str):
        super().__init__(
            message=f"Concurrent modification detected for {key}, retry the request",
            code="CONCURRENT_MODIFICATION",
            details={"key": key}
        )


class EmptyCartException(BusinessException):
    """Raised when materializing an order from no lines."""

    def __init__(self, buyer_id: str):
        super().__init__(
            message=f"Cart is empty for buyer {buyer_id}",
            code="EMPTY_CART",
            details={"buyer_id": buyer_id}
        )


class InsufficientStockException(BusinessException):
    """Raised when a line's quantity exceeds the catalog's available stock."""

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            message=f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            code="INSUFFICIENT_STOCK",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available
            }
        )


class InvalidStatusTransitionException(BusinessException):
    """Raised when an order status change is not allowed from its current status."""

    def __init__(self, order_id: str, current_status: str, requested_status: str):
        super().__init__(
            message=f"Order {order_id} cannot move from {current_status} to {requested_status}",
            code="INVALID_STATUS_TRANSITION",
            details={
                "order_id": order_id,
                "current_status": current_status,
                "requested_status": requested_status
            }
        )


class ValidationException(BusinessException):
    """Raised for validation errors."""

    def __init__(self, message: str, field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field_errors": field_errors} if field_errors else None
        )

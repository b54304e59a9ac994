"""
ORM models for marketplace persistence.

WHAT: SQLAlchemy models for all database tables
WHY: Persist products, bargain threads, resolved prices, carts, orders, notifications
HOW: Declarative models with constraints, relationships, and indexes
"""

from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, Text, JSON,
    ForeignKey, CheckConstraint, UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
import enum

from .database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores no timezone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Enums for status fields
class BargainStatus(str, enum.Enum):
    """Bargain thread status values."""
    PENDING = "pending"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (BargainStatus.ACCEPTED, BargainStatus.REJECTED)


class OrderStatus(str, enum.Enum):
    """Order lifecycle values."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    """Supported payment methods."""
    COD = "cod"
    ESEWA = "esewa"
    KHALTI = "khalti"


class PaymentStatus(str, enum.Enum):
    """Payment status values."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationType(str, enum.Enum):
    """Negotiation events delivered to participants."""
    OFFER = "offer"
    COUNTER = "counter"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Product(Base):
    """
    Product table - backing store for the default catalog.

    WHAT: Listed price, available stock and owning seller of a product
    WHY: Negotiations need the catalog price and owner, checkout needs stock
    HOW: Plain table, no foreign keys from negotiation tables (catalog is a collaborator)
    """
    __tablename__ = "products"

    product_id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(200), nullable=False)
    price = Column(Float, nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    owner_id = Column(String(100), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("price > 0", name="check_product_price_positive"),
        CheckConstraint("stock >= 0", name="check_product_stock_non_negative"),
        Index("idx_product_owner", "owner_id"),
    )

    def __repr__(self):
        return f"<Product(id={self.product_id}, name={self.name}, price={self.price})>"


class BargainThread(Base):
    """
    BargainThread table - one negotiation between a buyer and a product's price.

    WHAT: Offer, counter-offer, status and audit trail of a negotiation
    WHY: Threads are never deleted, terminal ones are kept as history
    HOW: ``open_key`` is set only while non-terminal, so its UNIQUE constraint
         allows at most one open thread per (buyer, product). ``version`` is
         the optimistic concurrency counter checked on every UPDATE.
    """
    __tablename__ = "bargain_threads"

    thread_id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    buyer_id = Column(String(100), nullable=False)
    product_id = Column(String(100), nullable=False)
    seller_id = Column(String(100), nullable=False)
    catalog_price = Column(Float, nullable=False)
    current_offer = Column(Float, nullable=False)
    counter_offer = Column(Float, nullable=True)
    accepted_price = Column(Float, nullable=True)
    status = Column(SQLEnum(BargainStatus), nullable=False, default=BargainStatus.PENDING)
    open_key = Column(String(210), nullable=True, unique=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("catalog_price > 0", name="check_catalog_price_positive"),
        CheckConstraint("current_offer > 0", name="check_current_offer_positive"),
        CheckConstraint("counter_offer IS NULL OR counter_offer > 0", name="check_counter_offer_positive"),
        Index("idx_bargain_buyer", "buyer_id"),
        Index("idx_bargain_seller", "seller_id"),
        Index("idx_bargain_buyer_product", "buyer_id", "product_id"),
    )

    __mapper_args__ = {"version_id_col": version}

    messages = relationship(
        "BargainMessage",
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="BargainMessage.sequence"
    )

    @staticmethod
    def make_open_key(buyer_id: str, product_id: str) -> str:
        return f"{buyer_id}:{product_id}"

    def __repr__(self):
        return f"<BargainThread(id={self.thread_id}, buyer={self.buyer_id}, status={self.status})>"


class BargainMessage(Base):
    """
    BargainMessage table - append-only message log of a thread.

    WHAT: Messages exchanged during a negotiation, in insertion order
    WHY: Audit trail that stays writable even after the thread closes
    HOW: Foreign key to BargainThread, unique (thread, sequence)
    """
    __tablename__ = "bargain_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(String(36), ForeignKey("bargain_threads.thread_id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    sender_id = Column(String(100), nullable=False)
    text = Column(Text, nullable=False)
    sent_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("thread_id", "sequence", name="unique_thread_message_sequence"),
    )

    thread = relationship("BargainThread", back_populates="messages")

    def __repr__(self):
        return f"<BargainMessage(thread={self.thread_id}, seq={self.sequence}, sender={self.sender_id})>"


class ResolvedPrice(Base):
    """
    ResolvedPrice table - the pricing ledger.

    WHAT: Accepted bargained price for a (buyer, product) pair
    WHY: Overrides the catalog price in cart pricing and checkout
    HOW: UNIQUE (buyer, product), overwritten by later acceptances
    """
    __tablename__ = "resolved_prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    buyer_id = Column(String(100), nullable=False)
    product_id = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    source_thread_id = Column(String(36), nullable=False)
    resolved_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("buyer_id", "product_id", name="unique_resolved_price_key"),
        CheckConstraint("price > 0", name="check_resolved_price_positive"),
    )

    def __repr__(self):
        return f"<ResolvedPrice(buyer={self.buyer_id}, product={self.product_id}, price={self.price})>"


class CartItem(Base):
    """
    CartItem table - stored cart lines of a buyer.

    WHAT: Product and quantity a buyer intends to purchase
    WHY: Cart survives between requests until checkout clears it
    HOW: UNIQUE (buyer, product) with quantity CHECK
    """
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    buyer_id = Column(String(100), nullable=False)
    product_id = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    added_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("buyer_id", "product_id", name="unique_cart_line"),
        CheckConstraint("quantity >= 1", name="check_cart_quantity_positive"),
    )

    def __repr__(self):
        return f"<CartItem(buyer={self.buyer_id}, product={self.product_id}, qty={self.quantity})>"


class Order(Base):
    """
    Order table - immutable price snapshot taken at checkout.

    WHAT: Buyer's order with frozen totals, lifecycle and payment state
    WHY: Prices must never be recomputed once the order exists
    HOW: Items copied from resolved cart prices, status/payment mutable
    """
    __tablename__ = "orders"

    order_id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    order_number = Column(String(40), unique=True, nullable=False)
    buyer_id = Column(String(100), nullable=False)
    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    total_amount = Column(Float, nullable=False)
    linked_bargain_thread_id = Column(String(36), nullable=True)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False, default=PaymentMethod.COD)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_reference = Column(String(100), nullable=True)
    payment_amount = Column(Float, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    shipping_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        Index("idx_order_buyer", "buyer_id"),
        Index("idx_order_status", "status"),
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )

    def __repr__(self):
        return f"<Order(id={self.order_id}, buyer={self.buyer_id}, total={self.total_amount}, status={self.status})>"


class OrderItem(Base):
    """
    OrderItem table - one frozen line of an order.

    WHAT: Product, its seller, quantity and unit price at purchase
    WHY: Keep the price that applied at checkout, independent of the ledger
    HOW: Foreign key to Order with quantity/price CHECKs
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String(100), nullable=False)
    seller_id = Column(String(100), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price_at_purchase = Column(Float, nullable=False)
    price_source = Column(String(20), nullable=False)  # bargain or catalog
    bargain_thread_id = Column(String(36), nullable=True)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="check_order_item_quantity_positive"),
        CheckConstraint("unit_price_at_purchase > 0", name="check_order_item_price_positive"),
    )

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem(product={self.product_id}, qty={self.quantity}, price={self.unit_price_at_purchase})>"


class Notification(Base):
    """
    Notification table - per-user inbox of negotiation events.

    WHAT: Stored notification for the recipient of a bargain event
    WHY: Delivery target of the database notification dispatcher
    HOW: Written outside the negotiation transaction, never read by the core
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid4()))
    user_id = Column(String(100), nullable=False)
    thread_id = Column(String(36), nullable=True)
    event_type = Column(SQLEnum(NotificationType), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_notification_user", "user_id"),
    )

    def __repr__(self):
        return f"<Notification(user={self.user_id}, type={self.event_type}, read={self.read})>"

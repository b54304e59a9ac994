"""
Unit tests for the cart and order services.

WHAT: Test cart CRUD, checkout and the order lifecycle
WHY: Checkout clears the cart; status moves follow a fixed table
HOW: Services over a fake catalog and the test database
"""

import pytest

from bargain_market.core.models import CartItem, OrderStatus, PaymentMethod, PaymentStatus
from bargain_market.services.cart_service import CartService
from bargain_market.services.order_materializer import OrderMaterializer
from bargain_market.services.order_service import OrderService
from bargain_market.utils.exceptions import (
    ConcurrentModificationException,
    EmptyCartException,
    InvalidStatusTransitionException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)


@pytest.fixture
def carts(catalog):
    return CartService(catalog)


@pytest.fixture
def orders():
    return OrderService()


@pytest.fixture
def placed_order(carts):
    carts.add_item("buyer_1", "laptop", 1)
    return carts.checkout("buyer_1")


@pytest.mark.unit
class TestCartService:

    def test_add_merges_lines(self, carts):
        carts.add_item("buyer_1", "laptop", 1)
        lines = carts.add_item("buyer_1", "laptop", 2)
        assert [(l.product_id, l.quantity) for l in lines] == [("laptop", 3)]

    def test_add_unknown_product(self, carts):
        with pytest.raises(NotFoundException):
            carts.add_item("buyer_1", "missing", 1)

    def test_set_and_remove(self, carts):
        carts.add_item("buyer_1", "laptop", 1)
        carts.add_item("buyer_1", "phone", 1)

        lines = carts.set_quantity("buyer_1", "phone", 4)
        assert dict((l.product_id, l.quantity) for l in lines) == {"laptop": 1, "phone": 4}

        lines = carts.remove_item("buyer_1", "laptop")
        assert [l.product_id for l in lines] == ["phone"]

        with pytest.raises(NotFoundException):
            carts.remove_item("buyer_1", "laptop")

    def test_invalid_quantity(self, carts):
        with pytest.raises(ValidationException):
            carts.add_item("buyer_1", "laptop", 0)

    def test_carts_are_per_buyer(self, carts):
        carts.add_item("buyer_1", "laptop", 1)
        assert carts.get_lines("buyer_2") == []

    def test_checkout_clears_cart(self, carts):
        carts.add_item("buyer_1", "laptop", 2)
        order = carts.checkout("buyer_1", payment_method=PaymentMethod.KHALTI)

        assert order.total_amount == 200.0
        assert order.payment_method == PaymentMethod.KHALTI
        assert carts.get_lines("buyer_1") == []

    def test_line_added_during_checkout_stays_in_cart(self, catalog):
        class AddsPhoneAfterOrdering(OrderMaterializer):
            def materialize(self, buyer_id, lines, **kwargs):
                order = super().materialize(buyer_id, lines, **kwargs)
                kwargs["db"].add(CartItem(buyer_id=buyer_id, product_id="phone", quantity=1))
                kwargs["db"].flush()
                return order

        carts = CartService(catalog, AddsPhoneAfterOrdering(catalog))
        carts.add_item("buyer_1", "laptop", 1)
        order = carts.checkout("buyer_1")

        assert [i.product_id for i in order.items] == ["laptop"]
        assert [(l.product_id, l.quantity) for l in carts.get_lines("buyer_1")] == [("phone", 1)]

    def test_lines_already_checked_out_conflict(self, catalog, orders, admin):
        class OtherCheckoutWins(OrderMaterializer):
            def materialize(self, buyer_id, lines, **kwargs):
                order = super().materialize(buyer_id, lines, **kwargs)
                kwargs["db"].query(CartItem).filter_by(buyer_id=buyer_id).delete()
                return order

        carts = CartService(catalog, OtherCheckoutWins(catalog))
        carts.add_item("buyer_1", "laptop", 1)
        with pytest.raises(ConcurrentModificationException):
            carts.checkout("buyer_1")

        assert orders.list_orders(admin) == []
        assert [l.product_id for l in carts.get_lines("buyer_1")] == ["laptop"]

    def test_checkout_empty_cart(self, carts):
        with pytest.raises(EmptyCartException):
            carts.checkout("buyer_1")

    def test_clear_counts_lines(self, carts):
        carts.add_item("buyer_1", "laptop", 1)
        carts.add_item("buyer_1", "phone", 1)
        assert carts.clear("buyer_1") == 2
        assert carts.clear("buyer_1") == 0


@pytest.mark.unit
class TestOrderService:

    def test_visibility(self, orders, placed_order, buyer, other_buyer, seller, other_seller, admin):
        assert orders.get_order(buyer, placed_order.order_id).order_id == placed_order.order_id
        assert orders.get_order(seller, placed_order.order_id).order_id == placed_order.order_id
        assert orders.get_order(admin, placed_order.order_id).order_id == placed_order.order_id

        for actor in (other_buyer, other_seller):
            with pytest.raises(UnauthorizedException):
                orders.get_order(actor, placed_order.order_id)

        assert len(orders.list_orders(buyer)) == 1
        assert len(orders.list_orders(other_buyer)) == 0
        assert len(orders.list_orders(seller)) == 1
        assert len(orders.list_orders(other_seller)) == 0

    def test_seller_access_survives_catalog_removal(self, orders, placed_order, catalog, seller, other_seller):
        del catalog.products["laptop"]

        assert [o.order_id for o in orders.list_orders(seller)] == [placed_order.order_id]
        assert orders.get_order(seller, placed_order.order_id).items[0].seller_id == "seller_1"
        assert orders.list_orders(other_seller) == []

    def test_unknown_order(self, orders, admin):
        with pytest.raises(NotFoundException):
            orders.get_order(admin, "missing")

    def test_lifecycle(self, orders, placed_order, seller, admin):
        orders.update_status(seller, placed_order.order_id, OrderStatus.PROCESSING)
        orders.update_status(admin, placed_order.order_id, OrderStatus.SHIPPED)
        delivered = orders.update_status(admin, placed_order.order_id, OrderStatus.DELIVERED)

        assert delivered.status == OrderStatus.DELIVERED
        assert delivered.total_amount == placed_order.total_amount
        with pytest.raises(InvalidStatusTransitionException):
            orders.update_status(admin, placed_order.order_id, OrderStatus.CANCELLED)

    def test_cannot_skip_states(self, orders, placed_order, admin):
        with pytest.raises(InvalidStatusTransitionException):
            orders.update_status(admin, placed_order.order_id, OrderStatus.DELIVERED)

    def test_buyer_may_only_cancel_pending(self, orders, placed_order, buyer, admin):
        with pytest.raises(UnauthorizedException):
            orders.update_status(buyer, placed_order.order_id, OrderStatus.PROCESSING)

        cancelled = orders.update_status(buyer, placed_order.order_id, OrderStatus.CANCELLED)
        assert cancelled.status == OrderStatus.CANCELLED

    def test_unrelated_seller_cannot_update(self, orders, placed_order, other_seller):
        with pytest.raises(UnauthorizedException):
            orders.update_status(other_seller, placed_order.order_id, OrderStatus.PROCESSING)

    def test_payment_method_by_owner(self, orders, placed_order, buyer, other_buyer):
        updated = orders.select_payment_method(buyer, placed_order.order_id, PaymentMethod.ESEWA)
        assert updated.payment_method == PaymentMethod.ESEWA

        with pytest.raises(UnauthorizedException):
            orders.select_payment_method(other_buyer, placed_order.order_id, PaymentMethod.COD)

    def test_record_payment(self, orders, placed_order, buyer, admin):
        with pytest.raises(UnauthorizedException):
            orders.record_payment(buyer, placed_order.order_id, PaymentStatus.COMPLETED)

        paid = orders.record_payment(admin, placed_order.order_id, PaymentStatus.COMPLETED, reference_id="TX-1")
        assert paid.payment_status == PaymentStatus.COMPLETED
        assert paid.payment_amount == placed_order.total_amount
        assert paid.payment_reference == "TX-1"
        assert paid.paid_at is not None

        with pytest.raises(ValidationException):
            orders.select_payment_method(buyer, placed_order.order_id, PaymentMethod.KHALTI)
        with pytest.raises(ValidationException):
            orders.record_payment(admin, placed_order.order_id, PaymentStatus.COMPLETED)

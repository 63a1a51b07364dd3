"""Tests for cart → order conversion and the cart service around it."""

import pytest

from app.core.errors import CollaboratorUnavailable, EmptyCart, MinimumOrderNotMet, OutOfStock
from app.repositories.memory import MemoryCartRepository
from app.schemas.order import OrderStatus
from app.services.cart_service import CartService
from app.services.checkout import CheckoutService

USER = "cust-1"


class UnclearableCarts(MemoryCartRepository):
    """Cart store whose deletes always fail."""

    def clear(self, user_id):
        raise CollaboratorUnavailable("cart store")


class BrokenOrders:
    """Order store that accepts nothing."""

    def __init__(self, inner):
        self.inner = inner

    def create(self, order):
        raise CollaboratorUnavailable("order store")

    def __getattr__(self, name):
        return getattr(self.inner, name)


@pytest.fixture
def checkout(carts, products, orders, notifier):
    return CheckoutService(carts, products, orders, notifier, default_eta_minutes=10)


class TestCartService:
    def test_mutations_are_persisted(self, carts, cart_repo):
        carts.add_item(USER, "A", 2)
        carts.add_item(USER, "B", 1)
        stored = cart_repo.load(USER)
        assert [(i.product_id, i.qty) for i in stored.items] == [("A", 2), ("B", 1)]
        assert carts.get(USER).cart.subtotal == 24000

    def test_warning_is_returned(self, carts):
        response = carts.add_item(USER, "A", 9)
        assert response.warning is not None
        assert response.warning.clamped == 5
        assert response.cart.subtotal == 50000

    def test_failed_mutation_saves_nothing(self, carts, cart_repo):
        carts.add_item(USER, "A", 2)
        with pytest.raises(OutOfStock):
            carts.add_item(USER, "D", 1)
        assert [i.product_id for i in cart_repo.load(USER).items] == ["A"]

    def test_get_reconciles_stock_drop(self, carts, products):
        carts.add_item(USER, "A", 4)
        products.save(products.get("A").model_copy(update={"stock": 2}))
        response = carts.get(USER)
        assert response.cart.items[0].quantity == 2
        assert response.warning.clamped == 2

    def test_clear_removes_stored_cart(self, carts, cart_repo):
        carts.add_item(USER, "A", 1)
        carts.apply_promo_code(USER, "FLAT50")
        response = carts.clear(USER)
        assert response.cart.discount == 0
        assert cart_repo.load(USER).items == []


class TestCheckout:
    def test_empty_cart(self, checkout):
        with pytest.raises(EmptyCart):
            checkout.checkout(USER, "12 MG Road", "cash")

    def test_creates_pending_order(self, checkout, carts, products, orders, notifier, cart_repo):
        carts.add_item(USER, "A", 3)
        carts.add_item(USER, "B", 2)
        carts.apply_promo_code(USER, "FIRST10")

        order = checkout.checkout(USER, "12 MG Road", "upi")

        assert order.status == OrderStatus.PENDING
        assert order.payment_method == "upi"
        assert order.payment_status == "pending"
        assert order.estimated_delivery_time == 10
        assert [(i.product_id, i.quantity, i.unit_price) for i in order.items] == [
            ("A", 3, 10000),
            ("B", 2, 4000),
        ]
        assert order.subtotal == 38000
        assert order.discount == 3800
        assert order.total == 38000 + order.delivery_fee - 3800
        assert order.promo_code == "FIRST10"
        assert orders.get(order.id) == order

        assert products.get("A").stock == 2
        assert products.get("B").stock == 8
        assert cart_repo.load(USER).items == []
        assert [(e.type, e.order_id) for e in notifier.events] == [("new_order", order.id)]

    def test_order_items_are_frozen(self, checkout, carts, products, orders):
        carts.add_item(USER, "A", 1)
        order = checkout.checkout(USER, "12 MG Road")
        products.save(products.get("A").model_copy(update={"price": 99999, "stock": 0}))
        stored = orders.get(order.id)
        assert stored.items[0].unit_price == 10000
        assert stored.total == order.total

    def test_promo_rechecked_against_reconciled_cart(self, checkout, carts, products, cart_repo, orders):
        carts.add_item(USER, "A", 3)
        carts.apply_promo_code(USER, "FIRST10")
        products.save(products.get("A").model_copy(update={"stock": 1}))
        with pytest.raises(MinimumOrderNotMet):
            checkout.checkout(USER, "12 MG Road")
        assert orders.list() == []
        assert cart_repo.load(USER).items[0].qty == 3

    def test_storage_failure_leaves_cart_and_stock(self, carts, products, orders, notifier, cart_repo):
        checkout = CheckoutService(carts, products, BrokenOrders(orders), notifier)
        carts.add_item(USER, "A", 2)
        with pytest.raises(CollaboratorUnavailable):
            checkout.checkout(USER, "12 MG Road")
        assert products.get("A").stock == 5
        assert cart_repo.load(USER).items[0].qty == 2
        assert notifier.events == []


class TestStockReservation:
    def test_all_or_nothing(self, products):
        with pytest.raises(OutOfStock):
            products.reserve({"A": 2, "B": 50})
        assert products.get("A").stock == 5
        assert products.get("B").stock == 10

    def test_release_restores(self, products):
        products.reserve({"A": 2})
        products.release({"A": 2})
        assert products.get("A").stock == 5


class TestCartCleanupFailure:
    def test_order_survives_failed_cart_clear(self, products, promos, orders, notifier):
        carts = CartService(UnclearableCarts(), products, promos, delivery_fee=2000)
        checkout = CheckoutService(carts, products, orders, notifier)
        carts.add_item(USER, "A", 2)

        order = checkout.checkout(USER, "12 MG Road")

        assert orders.list() == [order]
        assert products.get("A").stock == 3
        assert [(e.type, e.order_id) for e in notifier.events] == [("new_order", order.id)]

    def test_cart_cleared_after_success(self, checkout, carts, cart_repo):
        carts.add_item(USER, "B", 1)
        checkout.checkout(USER, "12 MG Road")
        assert cart_repo.load(USER).items == []
        assert carts.get(USER).cart.items == []


class TestReconciliationReport:
    def test_all_clamps_and_removals_reported(self, carts, products):
        carts.add_item(USER, "A", 4)
        carts.add_item(USER, "B", 9)
        carts.add_item(USER, "E", 2)
        products.save(products.get("A").model_copy(update={"stock": 2}))
        products.save(products.get("B").model_copy(update={"stock": 3}))
        products.save(products.get("E").model_copy(update={"is_active": False}))

        response = carts.get(USER)

        assert [(w.product_id, w.clamped) for w in response.warnings] == [("A", 2), ("B", 3)]
        assert response.warning.product_id == "A"
        assert response.removed == ["E"]
        assert [i.product_id for i in response.cart.items] == ["A", "B"]

    def test_mutation_reports_stored_line_changes(self, carts, products):
        carts.add_item(USER, "A", 1)
        carts.add_item(USER, "E", 1)
        products.save(products.get("E").model_copy(update={"stock": 0}))
        response = carts.add_item(USER, "B", 1)
        assert response.removed == ["E"]
        assert response.warning is None

"""Tests for the cart engine: stock clamping, derived totals and promo application."""

import random

import pytest

from app.core.errors import (
    CollaboratorTimeout,
    CollaboratorUnavailable,
    InvalidPromoCode,
    ItemNotInCart,
    MinimumOrderNotMet,
    OutOfStock,
    ProductNotFound,
)
from app.schemas.cart import StoredCart, StoredCartItem
from app.services.cart_engine import CartEngine

DELIVERY_FEE = 2000


def assert_consistent(engine, products):
    expected = sum(
        (it.discount_price if it.discount_price is not None else it.price) * it.quantity
        for it in engine.items
    )
    assert engine.subtotal == expected
    assert 0 <= engine.discount <= engine.subtotal
    assert engine.total == max(0, engine.subtotal + engine.delivery_fee - engine.discount)
    for it in engine.items:
        assert 0 < it.quantity <= products.get(it.product_id).stock


class TimingOutProducts:
    def get(self, product_id):
        raise CollaboratorTimeout("product store")


class DownValidator:
    def validate(self, code, subtotal):
        raise CollaboratorUnavailable("promo store")


class TestAddItem:
    def test_add_computes_subtotal_and_total(self, engine):
        result = engine.add_item("A", 3)
        assert result.warning is None
        assert engine.subtotal == 30000
        assert engine.total == 30000 + DELIVERY_FEE
        assert result.view.subtotal == 30000
        assert result.view.item_count == 3

    def test_add_existing_increments(self, engine):
        engine.add_item("A", 1)
        engine.add_item("A", 2)
        assert engine.get_item_quantity("A") == 3
        assert len(engine.items) == 1

    def test_add_above_stock_clamps_with_warning(self, engine):
        engine.add_item("A", 4)
        result = engine.add_item("A", 3)
        assert engine.get_item_quantity("A") == 5
        assert result.warning is not None
        assert result.warning.requested == 7
        assert result.warning.clamped == 5
        assert result.warning.code == "stock_exceeded"

    def test_unknown_product(self, engine):
        engine.add_item("A", 1)
        with pytest.raises(ProductNotFound):
            engine.add_item("nope")
        assert [it.product_id for it in engine.items] == ["A"]

    @pytest.mark.parametrize("product_id", ["C", "D"])
    def test_inactive_or_sold_out_leaves_cart_unchanged(self, engine, product_id):
        engine.add_item("A", 2)
        before = engine.view()
        with pytest.raises(OutOfStock):
            engine.add_item(product_id)
        assert engine.view() == before

    def test_discount_price_is_effective_price(self, engine):
        engine.add_item("B", 2)
        assert engine.subtotal == 8000

    def test_items_keep_insertion_order(self, engine):
        engine.add_item("B")
        engine.add_item("A")
        engine.add_item("B")
        assert [it.product_id for it in engine.items] == ["B", "A"]

    def test_timeout_leaves_cart_unchanged(self, products, promos):
        engine = CartEngine(products, promos, DELIVERY_FEE)
        engine.add_item("A", 2)
        engine._products = TimingOutProducts()
        with pytest.raises(CollaboratorTimeout):
            engine.add_item("B", 1)
        assert engine.get_item_quantity("A") == 2
        assert not engine.is_in_cart("B")
        assert engine.subtotal == 20000


class TestUpdateQuantity:
    def test_scenario_clamp_to_stock(self, engine):
        engine.add_item("A", 3)
        assert engine.subtotal == 30000
        result = engine.update_quantity("A", 10)
        assert result.warning is not None
        assert result.warning.clamped == 5
        assert engine.get_item_quantity("A") == 5
        assert engine.subtotal == 50000

    def test_within_stock_has_no_warning(self, engine):
        engine.add_item("A", 1)
        result = engine.update_quantity("A", 4)
        assert result.warning is None
        assert engine.subtotal == 40000

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_removes(self, engine, quantity):
        engine.add_item("A", 2)
        engine.update_quantity("A", quantity)
        assert not engine.is_in_cart("A")

    def test_missing_item(self, engine):
        with pytest.raises(ItemNotInCart):
            engine.update_quantity("A", 2)


class TestRemoveAndClear:
    def test_remove_then_query(self, engine):
        engine.add_item("A", 2)
        engine.remove_item("A")
        assert engine.is_in_cart("A") is False
        assert engine.get_item_quantity("A") == 0

    def test_remove_absent_is_noop(self, engine):
        engine.add_item("B")
        result = engine.remove_item("A")
        assert result.view.item_count == 1

    def test_clear_resets_discount(self, engine):
        engine.add_item("A", 3)
        engine.apply_promo_code("FIRST10")
        engine.clear_cart()
        view = engine.view()
        assert view.items == []
        assert view.discount == 0
        assert view.promo_code is None
        assert engine.subtotal == 0

    def test_queries_on_absent_items(self, engine):
        assert engine.is_in_cart("zzz") is False
        assert engine.get_item_quantity("zzz") == 0


class TestPromo:
    def test_percent_promo(self, engine):
        engine.add_item("A", 3)
        engine.apply_promo_code("first10")
        assert engine.promo_code == "FIRST10"
        assert engine.discount == 3000
        assert engine.total == 30000 + DELIVERY_FEE - 3000

    def test_percent_promo_is_capped(self, engine):
        engine.add_item("E", 1)
        engine.apply_promo_code("HALF")
        assert engine.discount == 10000

    def test_minimum_order_not_met_keeps_discount(self, engine):
        engine.add_item("A", 1)
        engine.apply_promo_code("FLAT50")
        assert engine.discount == 5000
        with pytest.raises(MinimumOrderNotMet) as exc:
            engine.apply_promo_code("FIRST10")
        assert exc.value.min_order == 20000
        assert engine.discount == 5000
        assert engine.promo_code == "FLAT50"

    @pytest.mark.parametrize("code,reason", [("NOPE", "not_found"), ("OLD", "expired"), ("OFF", "inactive")])
    def test_invalid_codes(self, engine, code, reason):
        engine.add_item("A", 3)
        with pytest.raises(InvalidPromoCode) as exc:
            engine.apply_promo_code(code)
        assert exc.value.reason == reason
        assert engine.discount == 0

    def test_discount_clamped_to_subtotal(self, engine):
        engine.add_item("A", 3)
        engine.apply_promo_code("HUGE")
        assert engine.discount == 30000
        assert engine.total == DELIVERY_FEE

    def test_discount_follows_shrinking_subtotal(self, engine):
        engine.add_item("A", 1)
        engine.apply_promo_code("FLAT50")
        engine.update_quantity("A", 0)
        assert engine.discount == 0
        assert engine.total == DELIVERY_FEE

    def test_validator_failure_leaves_state(self, products):
        engine = CartEngine(products, DownValidator(), DELIVERY_FEE)
        engine.add_item("A", 3)
        with pytest.raises(CollaboratorUnavailable):
            engine.apply_promo_code("FIRST10")
        assert engine.discount == 0
        assert engine.promo_code is None

    def test_remove_promo(self, engine):
        engine.add_item("A", 3)
        engine.apply_promo_code("FIRST10")
        engine.remove_promo_code()
        assert engine.discount == 0
        assert engine.total == 30000 + DELIVERY_FEE


class TestRestore:
    def test_restore_reconciles_against_catalogue(self, products, promos):
        stored = StoredCart(
            items=[
                StoredCartItem(product_id="A", qty=9),
                StoredCartItem(product_id="C", qty=1),
                StoredCartItem(product_id="gone", qty=1),
                StoredCartItem(product_id="B", qty=2),
            ],
            promo_code="FLAT50",
            discount=5000,
        )
        engine, report = CartEngine.restore(products, promos, stored, DELIVERY_FEE)
        assert report.dropped == ["C", "gone"]
        assert [w.product_id for w in report.clamped] == ["A"]
        assert engine.get_item_quantity("A") == 5
        assert engine.get_item_quantity("B") == 2
        assert engine.discount == 5000
        assert engine.promo_code == "FLAT50"

    def test_snapshot_round_trips(self, engine, products, promos):
        engine.add_item("A", 2)
        engine.add_item("B", 1)
        engine.apply_promo_code("FLAT50")
        restored, report = CartEngine.restore(products, promos, engine.snapshot(), DELIVERY_FEE)
        assert not report.changed
        assert restored.view() == engine.view()

    def test_reconcile_picks_up_price_change(self, engine, products):
        engine.add_item("A", 2)
        products.save(products.get("A").model_copy(update={"price": 12000}))
        engine.reconcile()
        assert engine.subtotal == 24000


class TestInvariants:
    def test_random_operation_sequences(self, products, promos):
        rng = random.Random(20240611)
        ids = ["A", "B", "C", "D", "E", "missing"]
        for _ in range(20):
            engine = CartEngine(products, promos, DELIVERY_FEE)
            for _ in range(40):
                op = rng.choice(["add", "update", "remove", "promo"])
                pid = rng.choice(ids)
                try:
                    if op == "add":
                        engine.add_item(pid, rng.randint(1, 8))
                    elif op == "update":
                        engine.update_quantity(pid, rng.randint(-2, 12))
                    elif op == "remove":
                        engine.remove_item(pid)
                    else:
                        engine.apply_promo_code(rng.choice(["FIRST10", "FLAT50", "HALF", "NOPE"]))
                except (ProductNotFound, OutOfStock, ItemNotInCart, InvalidPromoCode, MinimumOrderNotMet):
                    pass
                assert_consistent(engine, products)

# app/services/cart_engine.py
"""
# Cart Engine

One authoritative cart per user. The engine owns the item collection, the
applied promo discount and the delivery fee; every monetary value is derived
from the current items on read and never cached.

Invariants after every operation returns:
- items are unique by product id (insertion ordered),
- `quantity <= product.stock` for every line (requests above stock are clamped
  and reported as a `StockExceeded` warning on the result, never raised),
- `subtotal = Σ unit_price × quantity`,
- `total = max(0, subtotal + delivery_fee - discount)` with the exposed
  discount clamped to `[0, subtotal]`.

Mutations build the next item collection on a copy and swap it in only after
every collaborator call has returned, so a failure (including a collaborator
timeout) leaves the cart exactly as it was.

The engine performs no I/O of its own beyond the two collaborators it is
given: a product lookup (`ProductRepository.get`) and a promo validator
(`validate(code, subtotal) -> PromoValidation`). Persistence is the caller's
job (`CartService`).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from app.core.errors import (
    InvalidPromoCode,
    ItemNotInCart,
    MinimumOrderNotMet,
    OutOfStock,
    ProductNotFound,
    StockExceeded,
)
from app.repositories.base import ProductRepository
from app.schemas.cart import CartItem, CartView, StoredCart, StoredCartItem
from app.schemas.discount import PromoValidation
from app.schemas.product import Product

logger = logging.getLogger("grocer.cart")


class PromoValidator(Protocol):
    def validate(self, code: str, subtotal: int) -> PromoValidation: ...


@dataclass(frozen=True)
class CartMutation:
    """Result of a successful mutation: the new read model plus an optional clamp warning."""
    view: CartView
    warning: Optional[StockExceeded] = None


@dataclass
class Reconciliation:
    """Lines changed while checking a cart against the live catalogue."""
    dropped: List[str] = field(default_factory=list)
    clamped: List[StockExceeded] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.dropped or self.clamped)


def _line(product: Product, quantity: int) -> CartItem:
    return CartItem(
        product_id=product.id,
        name=product.name,
        quantity=quantity,
        price=product.price,
        discount_price=product.discount_price,
        stock=product.stock,
    )


class CartEngine:
    def __init__(
        self,
        products: ProductRepository,
        validator: PromoValidator,
        delivery_fee: int = 0,
    ):
        if delivery_fee < 0:
            raise ValueError("delivery_fee cannot be negative")
        self._products = products
        self._validator = validator
        self.delivery_fee = delivery_fee
        self._items: Dict[str, CartItem] = {}
        self._discount = 0
        self.promo_code: Optional[str] = None

    # ---------- restore ----------
    @classmethod
    def restore(
        cls,
        products: ProductRepository,
        validator: PromoValidator,
        stored: StoredCart,
        delivery_fee: int = 0,
    ) -> tuple[CartEngine, Reconciliation]:
        """Rebuilds a cart from its persisted item list, reconciled against the catalogue."""
        engine = cls(products, validator, delivery_fee)
        quantities: Dict[str, int] = {}
        for row in stored.items:
            quantities[row.product_id] = quantities.get(row.product_id, 0) + row.qty
        items, report = engine._reconciled(quantities)
        engine._items = items
        if items:
            engine._discount = max(0, stored.discount)
            engine.promo_code = stored.promo_code
        return engine, report

    def reconcile(self) -> Reconciliation:
        """Refreshes price/stock snapshots; drops unavailable lines and clamps the rest."""
        items, report = self._reconciled({pid: it.quantity for pid, it in self._items.items()})
        self._items = items
        if not items:
            self._discount = 0
            self.promo_code = None
        return report

    def _reconciled(self, quantities: Dict[str, int]) -> tuple[Dict[str, CartItem], Reconciliation]:
        report = Reconciliation()
        items: Dict[str, CartItem] = {}
        for pid, qty in quantities.items():
            product = self._products.get(pid)
            if product is None or not product.available:
                report.dropped.append(pid)
                continue
            if qty > product.stock:
                report.clamped.append(StockExceeded(pid, qty, product.stock))
                qty = product.stock
            items[pid] = _line(product, qty)
        if report.changed:
            logger.debug("Cart reconciled: dropped=%s clamped=%s",
                         report.dropped, [w.product_id for w in report.clamped])
        return items, report

    # ---------- derived values ----------
    @property
    def items(self) -> List[CartItem]:
        return list(self._items.values())

    @property
    def item_count(self) -> int:
        return sum(it.quantity for it in self._items.values())

    @property
    def subtotal(self) -> int:
        return sum(it.unit_price * it.quantity for it in self._items.values())

    @property
    def discount(self) -> int:
        return max(0, min(self._discount, self.subtotal))

    @property
    def total(self) -> int:
        return max(0, self.subtotal + self.delivery_fee - self.discount)

    # ---------- queries ----------
    def is_in_cart(self, product_id: str) -> bool:
        return product_id in self._items

    def get_item_quantity(self, product_id: str) -> int:
        item = self._items.get(product_id)
        return item.quantity if item else 0

    # ---------- mutations ----------
    def add_item(self, product_id: str, quantity: int = 1) -> CartMutation:
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        product = self._product(product_id)
        if not product.available:
            raise OutOfStock(product_id)

        items = dict(self._items)
        requested = self.get_item_quantity(product_id) + quantity
        clamped = min(requested, product.stock)
        items[product_id] = _line(product, clamped)

        self._items = items
        return self._result(product_id, requested, clamped)

    def update_quantity(self, product_id: str, quantity: int) -> CartMutation:
        if quantity <= 0:
            return self.remove_item(product_id)
        if product_id not in self._items:
            raise ItemNotInCart(product_id)
        product = self._product(product_id)
        if not product.available:
            raise OutOfStock(product_id)

        items = dict(self._items)
        clamped = min(quantity, product.stock)
        items[product_id] = _line(product, clamped)

        self._items = items
        return self._result(product_id, quantity, clamped)

    def remove_item(self, product_id: str) -> CartMutation:
        if product_id in self._items:
            items = dict(self._items)
            del items[product_id]
            self._items = items
        return CartMutation(self.view())

    def clear_cart(self) -> CartMutation:
        self._items = {}
        self._discount = 0
        self.promo_code = None
        return CartMutation(self.view())

    def apply_promo_code(self, code: str) -> CartMutation:
        code = (code or "").strip().upper()
        if not code:
            raise InvalidPromoCode(code, "empty")
        subtotal = self.subtotal
        result = self._validator.validate(code, subtotal)

        if not result.valid:
            if result.reason == "min_order":
                raise MinimumOrderNotMet(code, result.min_order or 0, subtotal)
            raise InvalidPromoCode(code, result.reason)
        if result.min_order is not None and subtotal < result.min_order:
            raise MinimumOrderNotMet(code, result.min_order, subtotal)

        self._discount = max(0, min(result.discount_amount, subtotal))
        self.promo_code = code
        logger.debug("Promo %s applied: discount=%s subtotal=%s", code, self._discount, subtotal)
        return CartMutation(self.view())

    def remove_promo_code(self) -> CartMutation:
        self._discount = 0
        self.promo_code = None
        return CartMutation(self.view())

    # ---------- outputs ----------
    def snapshot(self) -> StoredCart:
        return StoredCart(
            items=[StoredCartItem(product_id=it.product_id, qty=it.quantity) for it in self._items.values()],
            promo_code=self.promo_code,
            discount=self.discount,
        )

    def view(self) -> CartView:
        return CartView(
            items=self.items,
            item_count=self.item_count,
            subtotal=self.subtotal,
            delivery_fee=self.delivery_fee,
            discount=self.discount,
            total=self.total,
            promo_code=self.promo_code,
        )

    # ---------- helpers ----------
    def _product(self, product_id: str) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    def _result(self, product_id: str, requested: int, clamped: int) -> CartMutation:
        warning = StockExceeded(product_id, requested, clamped) if clamped < requested else None
        return CartMutation(self.view(), warning)

"""
app/repositories/memory.py - In-process collaborators.

Used by the test-suite and by `STORAGE_BACKEND=memory` local runs. Each store guards its
state with a lock so compare-and-set updates behave like the Firestore transactions do.
"""
from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from app.core.errors import OrderNotFound, OutOfStock, ProductNotFound
from app.repositories.base import StatusUpdate
from app.schemas.cart import StoredCart
from app.schemas.discount import PromoCode
from app.schemas.order import Order, OrderStatus, utcnow
from app.schemas.product import Category, Product
from app.schemas.user import OtpRecord, User


class MemoryProductRepository:
    def __init__(self, products: Optional[List[Product]] = None):
        self._lock = threading.RLock()
        self._items: Dict[str, Product] = {p.id: p for p in (products or [])}

    def get(self, product_id: str) -> Optional[Product]:
        with self._lock:
            return self._items.get(product_id)

    def list(self, category_id: Optional[str] = None, active_only: bool = True) -> List[Product]:
        with self._lock:
            out = list(self._items.values())
        if category_id:
            out = [p for p in out if p.category_id == category_id]
        if active_only:
            out = [p for p in out if p.is_active]
        return out

    def save(self, product: Product) -> Product:
        with self._lock:
            self._items[product.id] = product
        return product

    def reserve(self, quantities: Dict[str, int]) -> None:
        with self._lock:
            for pid, qty in quantities.items():
                product = self._items.get(pid)
                if product is None:
                    raise ProductNotFound(pid)
                if not product.is_active or product.stock < qty:
                    raise OutOfStock(pid)
            for pid, qty in quantities.items():
                product = self._items[pid]
                self._items[pid] = product.model_copy(update={"stock": product.stock - qty})

    def release(self, quantities: Dict[str, int]) -> None:
        with self._lock:
            for pid, qty in quantities.items():
                product = self._items.get(pid)
                if product is not None:
                    self._items[pid] = product.model_copy(update={"stock": product.stock + qty})

    def delete(self, product_id: str) -> bool:
        with self._lock:
            return self._items.pop(product_id, None) is not None


class MemoryCategoryRepository:
    def __init__(self, categories: Optional[List[Category]] = None):
        self._items: Dict[str, Category] = {c.id: c for c in (categories or [])}

    def get(self, category_id: str) -> Optional[Category]:
        return self._items.get(category_id)

    def list(self) -> List[Category]:
        return [c for c in self._items.values() if c.is_active]

    def save(self, category: Category) -> Category:
        self._items[category.id] = category
        return category

    def delete(self, category_id: str) -> bool:
        return self._items.pop(category_id, None) is not None


class MemoryCartRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self._carts: Dict[str, StoredCart] = {}

    def load(self, user_id: str) -> StoredCart:
        with self._lock:
            stored = self._carts.get(user_id)
            return stored.model_copy(deep=True) if stored else StoredCart()

    def save(self, user_id: str, cart: StoredCart) -> None:
        with self._lock:
            self._carts[user_id] = cart.model_copy(deep=True)

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._carts.pop(user_id, None)


class MemoryOrderRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self._orders: Dict[str, Order] = {}

    def create(self, order: Order) -> Order:
        with self._lock:
            self._orders[order.id] = order
        return order

    def get(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def list(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        delivery_partner_id: Optional[str] = None,
    ) -> List[Order]:
        with self._lock:
            out = list(self._orders.values())
        if user_id is not None:
            out = [o for o in out if o.user_id == user_id]
        if status is not None:
            out = [o for o in out if o.status == status]
        if delivery_partner_id is not None:
            out = [o for o in out if o.delivery_partner_id == delivery_partner_id]
        return sorted(out, key=lambda o: o.created_at, reverse=True)

    def update_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        fields: Optional[Dict[str, Any]] = None,
        expect: Optional[Dict[str, Any]] = None,
    ) -> StatusUpdate:
        return self._compare_and_set(order_id, expected_status, {**(fields or {}), "status": new_status}, expect)

    def update_fields(
        self,
        order_id: str,
        expected_status: OrderStatus,
        fields: Dict[str, Any],
        expect: Optional[Dict[str, Any]] = None,
    ) -> StatusUpdate:
        return self._compare_and_set(order_id, expected_status, fields, expect)

    def _compare_and_set(self, order_id, expected_status, patch, expect) -> StatusUpdate:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise OrderNotFound(order_id)
            if current.status != expected_status:
                return StatusUpdate(False, current)
            for key, value in (expect or {}).items():
                if getattr(current, key) != value:
                    return StatusUpdate(False, current)
            updated = current.model_copy(update={**patch, "updated_at": utcnow()})
            self._orders[order_id] = updated
            return StatusUpdate(True, updated)


class MemoryPromoRepository:
    def __init__(self, promos: Optional[List[PromoCode]] = None):
        self._items: Dict[str, PromoCode] = {p.code: p for p in (promos or [])}

    def get(self, code: str) -> Optional[PromoCode]:
        return self._items.get((code or "").strip().upper())

    def list(self) -> List[PromoCode]:
        return list(self._items.values())

    def save(self, promo: PromoCode) -> PromoCode:
        self._items[promo.code] = promo
        return promo


class MemoryUserRepository:
    def __init__(self, users: Optional[List[User]] = None):
        self._lock = threading.Lock()
        self._items: Dict[str, User] = {u.id: u for u in (users or [])}

    def get(self, user_id: str) -> Optional[User]:
        return self._items.get(user_id)

    def get_by_phone(self, phone: str) -> Optional[User]:
        return next((u for u in self._items.values() if u.phone == phone), None)

    def create(self, phone: str, role: str = "customer") -> User:
        with self._lock:
            existing = self.get_by_phone(phone)
            if existing:
                return existing
            user = User(id=uuid.uuid4().hex, phone=phone, role=role, created_at=utcnow())
            self._items[user.id] = user
            return user

    def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        with self._lock:
            user = self._items.get(user_id)
            if user is None:
                return None
            self._items[user_id] = user.model_copy(update=fields)
            return self._items[user_id]


class MemoryOtpRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self._items: Dict[str, OtpRecord] = {}

    def get(self, phone: str) -> Optional[OtpRecord]:
        return self._items.get(phone)

    def replace(self, record: OtpRecord) -> None:
        with self._lock:
            self._items[record.phone] = record

    def increment_attempt(self, phone: str) -> None:
        with self._lock:
            rec = self._items.get(phone)
            if rec:
                self._items[phone] = rec.model_copy(update={"attempts": rec.attempts + 1})

    def consume(self, phone: str) -> None:
        with self._lock:
            rec = self._items.get(phone)
            if rec:
                self._items[phone] = rec.model_copy(update={"consumed": True})

    def purge_expired(self, now_unix: int) -> int:
        with self._lock:
            stale = [p for p, r in self._items.items() if r.consumed or r.expires_at_unix < now_unix]
            for phone in stale:
                del self._items[phone]
        return len(stale)


# ---------- sample data (local runs) ----------
def sample_categories() -> List[Category]:
    rows = [
        ("fruits", "Fruits", "ri-shopping-basket-2-line", "primary"),
        ("vegetables", "Vegetables", "ri-plant-line", "green"),
        ("dairy", "Dairy", "ri-cup-line", "blue"),
        ("meat", "Meat", "ri-restaurant-line", "red"),
        ("bakery", "Bakery", "ri-bread-line", "yellow"),
    ]
    return [Category(id=cid, name=name, icon=icon, color=color) for cid, name, icon, color in rows]


def sample_products() -> List[Product]:
    rows = [
        ("strawberries", "Fresh Strawberries", "250g pack", "fruits", 19900, 14900, 25),
        ("avocados", "Organic Avocados", "Pack of 2", "fruits", 18500, 12900, 18),
        ("eggs", "Farm Fresh Eggs", "12 pcs", "dairy", 11000, 8900, 30),
        ("yogurt", "Greek Yogurt", "400g", "dairy", 11500, 7500, 45),
        ("milk", "Fresh Milk", "1 liter", "dairy", 6000, None, 50),
        ("bread", "Multigrain Bread", "400g loaf", "bakery", 4500, None, 35),
        ("bananas", "Organic Bananas", "6 pcs", "fruits", 5000, None, 40),
        ("tomatoes", "Fresh Tomatoes", "500g", "vegetables", 3500, None, 28),
        ("chicken", "Chicken Breast", "500g, Boneless", "meat", 18000, None, 15),
    ]
    return [
        Product(id=pid, name=name, unit=unit, category_id=cat, price=price,
                discount_price=discount, stock=stock)
        for pid, name, unit, cat, price, discount, stock in rows
    ]


def sample_promos() -> List[PromoCode]:
    return [
        PromoCode(
            code="FIRST10",
            discount_type="percent",
            discount=10,
            max_discount=10000,
            min_order=20000,
            expires_at=datetime.now(timezone.utc) + timedelta(days=30),
        ),
    ]


def sample_users() -> List[User]:
    return [
        User(id="admin-1", phone="9876543210", name="Admin User", role="admin"),
        User(id="delivery-1", phone="9876543211", name="Delivery Partner", role="delivery"),
        User(id="customer-1", phone="9876543212", name="Customer User", role="customer"),
    ]

"""
app/repositories/base.py - Collaborator contracts consumed by the engines.

Two implementations exist for each contract: `memory.py` (tests, local runs, seeded with the
sample catalogue) and `firestore.py` (production). The engines only ever see these protocols.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from app.schemas.cart import StoredCart
from app.schemas.discount import PromoCode
from app.schemas.order import Order, OrderStatus
from app.schemas.product import Category, Product
from app.schemas.user import OtpRecord, User


@dataclass(frozen=True)
class StatusUpdate:
    """Outcome of a conditional status update: `order` is the post-state on success,
    the current (unchanged) state on failure."""
    ok: bool
    order: Order


class ProductRepository(Protocol):
    def get(self, product_id: str) -> Optional[Product]: ...

    def list(self, category_id: Optional[str] = None, active_only: bool = True) -> List[Product]: ...

    def save(self, product: Product) -> Product: ...

    def reserve(self, quantities: Dict[str, int]) -> None:
        """Atomically decrements stock for every product or raises OutOfStock, changing nothing."""
        ...

    def release(self, quantities: Dict[str, int]) -> None: ...

    def delete(self, product_id: str) -> bool:
        """Removes the document; False when it did not exist."""
        ...


class CategoryRepository(Protocol):
    def get(self, category_id: str) -> Optional[Category]: ...

    def list(self) -> List[Category]: ...

    def save(self, category: Category) -> Category: ...

    def delete(self, category_id: str) -> bool: ...


class CartRepository(Protocol):
    def load(self, user_id: str) -> StoredCart: ...

    def save(self, user_id: str, cart: StoredCart) -> None: ...

    def clear(self, user_id: str) -> None: ...


class OrderRepository(Protocol):
    def create(self, order: Order) -> Order: ...

    def get(self, order_id: str) -> Optional[Order]: ...

    def list(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        delivery_partner_id: Optional[str] = None,
    ) -> List[Order]: ...

    def update_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        fields: Optional[Dict[str, Any]] = None,
        expect: Optional[Dict[str, Any]] = None,
    ) -> StatusUpdate:
        """Compare-and-set on (status, *expect). Raises OrderNotFound for unknown ids."""
        ...

    def update_fields(
        self,
        order_id: str,
        expected_status: OrderStatus,
        fields: Dict[str, Any],
        expect: Optional[Dict[str, Any]] = None,
    ) -> StatusUpdate:
        """Like update_status but leaves the status untouched."""
        ...


class PromoRepository(Protocol):
    def get(self, code: str) -> Optional[PromoCode]: ...

    def list(self) -> List[PromoCode]: ...

    def save(self, promo: PromoCode) -> PromoCode: ...


class UserRepository(Protocol):
    def get(self, user_id: str) -> Optional[User]: ...

    def get_by_phone(self, phone: str) -> Optional[User]: ...

    def create(self, phone: str, role: str = "customer") -> User:
        """Get-or-create keyed on the phone number; concurrent calls yield one user."""
        ...

    def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]: ...


class OtpRepository(Protocol):
    def get(self, phone: str) -> Optional[OtpRecord]: ...

    def replace(self, record: OtpRecord) -> None: ...

    def increment_attempt(self, phone: str) -> None: ...

    def consume(self, phone: str) -> None: ...

    def purge_expired(self, now_unix: int) -> int:
        """Deletes consumed records and records past their expiry; returns how many."""
        ...

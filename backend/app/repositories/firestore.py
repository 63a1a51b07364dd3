# app/repositories/firestore.py
"""
Firestore-backed collaborators (production).

- Collections are prefix-aware (FIREBASE_COLLECTION_PREFIX).
- Every call passes the configured timeout; google-api-core errors are translated to
  CollaboratorTimeout / CollaboratorUnavailable so the engines can leave their state untouched.
- Conditional order updates and stock reservations run inside Firestore transactions.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as gexc
from google.cloud import firestore as gcf
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, FieldFilter

from app.config import Settings
from app.core.errors import (
    CollaboratorTimeout,
    CollaboratorUnavailable,
    OrderNotFound,
    OutOfStock,
    ProductNotFound,
)
from app.repositories.base import StatusUpdate
from app.schemas.cart import StoredCart
from app.schemas.discount import PromoCode
from app.schemas.order import Order, OrderStatus, utcnow
from app.schemas.product import Category, Product
from app.schemas.user import OtpRecord, User

logger = logging.getLogger("grocer.firestore")


@contextmanager
def _guard(collaborator: str):
    """Maps transport errors to the engines' collaborator errors."""
    try:
        yield
    except (gexc.DeadlineExceeded, gexc.RetryError) as exc:
        logger.warning("%s timed out: %s", collaborator, exc)
        raise CollaboratorTimeout(collaborator) from exc
    except gexc.GoogleAPICallError as exc:
        logger.warning("%s failed: %s", collaborator, exc)
        raise CollaboratorUnavailable(collaborator, str(exc)) from exc


class _FirestoreRepo:
    collection_name = ""
    collaborator = "firestore"

    def __init__(self, db, cfg: Settings):
        self._db = db
        self._timeout = cfg.collaborator_timeout
        self._col = db.collection(cfg.collection(self.collection_name))


# ---------- products ----------
def _product_from_doc(snap) -> Product:
    d = snap.to_dict() or {}
    return Product(
        id=snap.id,
        name=d.get("name", ""),
        description=d.get("description", "") or "",
        unit=d.get("unit", "") or "",
        image=d.get("image", "") or "",
        category_id=d.get("category_id"),
        price=int(d.get("price", 0) or 0),
        discount_price=d.get("discount_price"),
        stock=max(0, int(d.get("stock", 0) or 0)),
        is_active=bool(d.get("is_active", True)),
    )


class FirestoreProductRepository(_FirestoreRepo):
    collection_name = "products"
    collaborator = "product store"

    def get(self, product_id: str) -> Optional[Product]:
        with _guard(self.collaborator):
            snap = self._col.document(product_id).get(timeout=self._timeout)
        return _product_from_doc(snap) if snap.exists else None

    def list(self, category_id: Optional[str] = None, active_only: bool = True) -> List[Product]:
        q = self._col
        if category_id:
            q = q.where(filter=FieldFilter("category_id", "==", category_id))
        if active_only:
            q = q.where(filter=FieldFilter("is_active", "==", True))
        with _guard(self.collaborator):
            return [_product_from_doc(d) for d in q.stream(timeout=self._timeout)]

    def save(self, product: Product) -> Product:
        with _guard(self.collaborator):
            self._col.document(product.id).set(product.model_dump(exclude={"id"}), timeout=self._timeout)
        return product

    def reserve(self, quantities: Dict[str, int]) -> None:
        refs = {pid: self._col.document(pid) for pid in quantities}

        @gcf.transactional
        def _apply(tx):
            # all reads before any write
            snaps = {pid: ref.get(transaction=tx) for pid, ref in refs.items()}
            for pid, snap in snaps.items():
                if not snap.exists:
                    raise ProductNotFound(pid)
                product = _product_from_doc(snap)
                if not product.is_active or product.stock < quantities[pid]:
                    raise OutOfStock(pid)
            for pid, ref in refs.items():
                tx.update(ref, {"stock": gcf.Increment(-quantities[pid])})

        with _guard(self.collaborator):
            _apply(self._db.transaction())

    def release(self, quantities: Dict[str, int]) -> None:
        batch = self._db.batch()
        for pid, qty in quantities.items():
            batch.update(self._col.document(pid), {"stock": gcf.Increment(qty)})
        with _guard(self.collaborator):
            batch.commit(timeout=self._timeout)

    def delete(self, product_id: str) -> bool:
        ref = self._col.document(product_id)
        with _guard(self.collaborator):
            if not ref.get(timeout=self._timeout).exists:
                return False
            ref.delete(timeout=self._timeout)
        return True


class FirestoreCategoryRepository(_FirestoreRepo):
    collection_name = "categories"
    collaborator = "category store"

    def get(self, category_id: str) -> Optional[Category]:
        with _guard(self.collaborator):
            snap = self._col.document(category_id).get(timeout=self._timeout)
        return Category(id=snap.id, **(snap.to_dict() or {})) if snap.exists else None

    def list(self) -> List[Category]:
        q = self._col.where(filter=FieldFilter("is_active", "==", True))
        with _guard(self.collaborator):
            return [Category(id=d.id, **(d.to_dict() or {})) for d in q.stream(timeout=self._timeout)]

    def save(self, category: Category) -> Category:
        with _guard(self.collaborator):
            self._col.document(category.id).set(category.model_dump(exclude={"id"}), timeout=self._timeout)
        return category

    def delete(self, category_id: str) -> bool:
        ref = self._col.document(category_id)
        with _guard(self.collaborator):
            if not ref.get(timeout=self._timeout).exists:
                return False
            ref.delete(timeout=self._timeout)
        return True


# ---------- carts ----------
class FirestoreCartRepository(_FirestoreRepo):
    collection_name = "carts"
    collaborator = "cart store"

    def load(self, user_id: str) -> StoredCart:
        with _guard(self.collaborator):
            snap = self._col.document(user_id).get(timeout=self._timeout)
        if not snap.exists:
            return StoredCart()
        data = snap.to_dict() or {}
        # skip malformed rows rather than failing the whole cart
        items = [
            it for it in data.get("items", [])
            if isinstance(it, dict) and it.get("product_id") and int(it.get("qty", 0) or 0) > 0
        ]
        return StoredCart(
            items=items,
            promo_code=data.get("promo_code"),
            discount=int(data.get("discount", 0) or 0),
        )

    def save(self, user_id: str, cart: StoredCart) -> None:
        doc = cart.model_dump()
        doc["updated_at"] = SERVER_TIMESTAMP
        with _guard(self.collaborator):
            self._col.document(user_id).set(doc, timeout=self._timeout)

    def clear(self, user_id: str) -> None:
        with _guard(self.collaborator):
            self._col.document(user_id).delete(timeout=self._timeout)


# ---------- orders ----------
def _order_to_doc(order: Order) -> Dict[str, Any]:
    doc = order.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})
    doc["created_at"] = order.created_at
    doc["updated_at"] = order.updated_at
    return doc


def _order_from_doc(snap) -> Order:
    d = dict(snap.to_dict() or {})
    d["id"] = snap.id
    return Order.model_validate(d)


def _patch_to_doc(patch: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, OrderStatus) else v) for k, v in patch.items()}


class FirestoreOrderRepository(_FirestoreRepo):
    collection_name = "orders"
    collaborator = "order store"

    def create(self, order: Order) -> Order:
        with _guard(self.collaborator):
            self._col.document(order.id).create(_order_to_doc(order), timeout=self._timeout)
        return order

    def get(self, order_id: str) -> Optional[Order]:
        with _guard(self.collaborator):
            snap = self._col.document(order_id).get(timeout=self._timeout)
        return _order_from_doc(snap) if snap.exists else None

    def list(
        self,
        *,
        user_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        delivery_partner_id: Optional[str] = None,
    ) -> List[Order]:
        q = self._col
        if user_id is not None:
            q = q.where(filter=FieldFilter("user_id", "==", user_id))
        if status is not None:
            q = q.where(filter=FieldFilter("status", "==", status.value))
        if delivery_partner_id is not None:
            q = q.where(filter=FieldFilter("delivery_partner_id", "==", delivery_partner_id))
        with _guard(self.collaborator):
            docs = list(q.stream(timeout=self._timeout))
        # sorted here so no composite index is needed
        return sorted((_order_from_doc(d) for d in docs), key=lambda o: o.created_at, reverse=True)

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
        ref = self._col.document(order_id)

        @gcf.transactional
        def _apply(tx) -> StatusUpdate:
            snap = ref.get(transaction=tx)
            if not snap.exists:
                raise OrderNotFound(order_id)
            current = _order_from_doc(snap)
            if current.status != expected_status:
                return StatusUpdate(False, current)
            for key, value in (expect or {}).items():
                if getattr(current, key) != value:
                    return StatusUpdate(False, current)
            now = utcnow()
            tx.update(ref, {**_patch_to_doc(patch), "updated_at": now})
            return StatusUpdate(True, current.model_copy(update={**patch, "updated_at": now}))

        with _guard(self.collaborator):
            return _apply(self._db.transaction())


# ---------- promo codes ----------
class FirestorePromoRepository(_FirestoreRepo):
    collection_name = "promo_codes"
    collaborator = "promo store"

    def get(self, code: str) -> Optional[PromoCode]:
        key = (code or "").strip().upper()
        if not key:
            return None
        with _guard(self.collaborator):
            snap = self._col.document(key).get(timeout=self._timeout)
        return PromoCode(code=key, **{k: v for k, v in (snap.to_dict() or {}).items() if k != "code"}) if snap.exists else None

    def list(self) -> List[PromoCode]:
        with _guard(self.collaborator):
            return [
                PromoCode(code=d.id, **{k: v for k, v in (d.to_dict() or {}).items() if k != "code"})
                for d in self._col.stream(timeout=self._timeout)
            ]

    def save(self, promo: PromoCode) -> PromoCode:
        with _guard(self.collaborator):
            self._col.document(promo.code).set(promo.model_dump(exclude={"code"}), timeout=self._timeout)
        return promo


# ---------- users & OTP ----------
class FirestoreUserRepository(_FirestoreRepo):
    collection_name = "users"
    collaborator = "user store"

    def __init__(self, db, cfg: Settings):
        super().__init__(db, cfg)
        # user_phones/{phone} -> {"uid": ...}; makes phone lookups transactional
        self._phones = db.collection(cfg.collection("user_phones"))

    def get(self, user_id: str) -> Optional[User]:
        with _guard(self.collaborator):
            snap = self._col.document(user_id).get(timeout=self._timeout)
        return User(id=snap.id, **(snap.to_dict() or {})) if snap.exists else None

    def get_by_phone(self, phone: str) -> Optional[User]:
        q = self._col.where(filter=FieldFilter("phone", "==", phone)).limit(1)
        with _guard(self.collaborator):
            docs = list(q.stream(timeout=self._timeout))
        return User(id=docs[0].id, **(docs[0].to_dict() or {})) if docs else None

    def create(self, phone: str, role: str = "customer") -> User:
        index_ref = self._phones.document(phone)
        by_phone = self._col.where(filter=FieldFilter("phone", "==", phone)).limit(1)

        @gcf.transactional
        def _get_or_create(tx) -> User:
            # all reads before any write; a concurrent creator makes this retry
            index = index_ref.get(transaction=tx)
            if index.exists:
                snap = self._col.document(index.get("uid")).get(transaction=tx)
                if snap.exists:
                    return User(id=snap.id, **(snap.to_dict() or {}))
            docs = list(tx.get(by_phone))
            if docs:
                user = User(id=docs[0].id, **(docs[0].to_dict() or {}))
            else:
                ref = self._col.document()
                user = User(id=ref.id, phone=phone, role=role, created_at=utcnow())
                tx.set(ref, user.model_dump(exclude={"id"}))
            tx.set(index_ref, {"uid": user.id})
            return user

        with _guard(self.collaborator):
            return _get_or_create(self._db.transaction())

    def update(self, user_id: str, fields: Dict[str, Any]) -> Optional[User]:
        with _guard(self.collaborator):
            try:
                self._col.document(user_id).update(dict(fields), timeout=self._timeout)
            except gexc.NotFound:
                return None
        return self.get(user_id)


class FirestoreOtpRepository(_FirestoreRepo):
    collection_name = "otp_verifications"
    collaborator = "otp store"

    def get(self, phone: str) -> Optional[OtpRecord]:
        with _guard(self.collaborator):
            snap = self._col.document(phone).get(timeout=self._timeout)
        return OtpRecord(**(snap.to_dict() or {})) if snap.exists else None

    def replace(self, record: OtpRecord) -> None:
        doc = record.model_dump()
        doc["requested_at"] = SERVER_TIMESTAMP
        with _guard(self.collaborator):
            self._col.document(record.phone).set(doc, timeout=self._timeout)

    def increment_attempt(self, phone: str) -> None:
        with _guard(self.collaborator):
            self._col.document(phone).update({"attempts": gcf.Increment(1)}, timeout=self._timeout)

    def consume(self, phone: str) -> None:
        with _guard(self.collaborator):
            self._col.document(phone).update(
                {"consumed": True, "consumed_at": SERVER_TIMESTAMP}, timeout=self._timeout
            )

    def purge_expired(self, now_unix: Optional[int] = None) -> int:
        """Deletes consumed records and records past their expiry."""
        now_unix = now_unix or int(time.time())
        queries = (
            self._col.where(filter=FieldFilter("expires_at_unix", "<", now_unix)),
            self._col.where(filter=FieldFilter("consumed", "==", True)),
        )
        seen = set()
        with _guard(self.collaborator):
            batch = self._db.batch()
            for q in queries:
                for doc in q.stream(timeout=self._timeout):
                    if doc.id in seen:
                        continue
                    seen.add(doc.id)
                    batch.delete(doc.reference)
                    if len(seen) % 400 == 0:  # Firestore batch limit
                        batch.commit()
                        batch = self._db.batch()
            if len(seen) % 400 != 0:
                batch.commit()
        return len(seen)

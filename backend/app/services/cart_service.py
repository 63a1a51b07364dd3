# app/services/cart_service.py
"""
Calling layer around the cart engine.

Each request loads the user's persisted cart, runs exactly one engine
operation under a per-user lock and saves the resulting snapshot. Rapid
duplicate requests from one session are therefore applied one after another,
each against the then-current items. Nothing is saved when the operation
raises, so a failed mutation leaves the stored cart unchanged.

Responses report every line the catalogue changed under the customer:
`warnings` for clamped quantities, `removed` for lines that disappeared.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from app.core.errors import CollaboratorTimeout, CollaboratorUnavailable, StockExceeded
from app.repositories.base import CartRepository, ProductRepository
from app.schemas.cart import CartResponse, CartView, CartWarning
from app.services.cart_engine import CartEngine, CartMutation, PromoValidator, Reconciliation

logger = logging.getLogger("grocer.cart")


def _warning(exc: StockExceeded) -> CartWarning:
    return CartWarning(
        code=exc.code,
        detail=exc.detail,
        product_id=exc.product_id,
        requested=exc.requested,
        clamped=exc.clamped,
    )


def _response(view: CartView, report: Reconciliation, extra: Optional[StockExceeded] = None) -> CartResponse:
    warnings: List[CartWarning] = [_warning(w) for w in report.clamped]
    if extra is not None:
        warnings.append(_warning(extra))
    return CartResponse(
        cart=view,
        # the mutation's own clamp wins over stored-line clamps
        warning=_warning(extra) if extra is not None else (warnings[0] if warnings else None),
        warnings=warnings,
        removed=list(report.dropped),
    )


class CartService:
    def __init__(
        self,
        carts: CartRepository,
        products: ProductRepository,
        validator: PromoValidator,
        delivery_fee: int = 0,
    ):
        self._carts = carts
        self._products = products
        self._validator = validator
        self._delivery_fee = delivery_fee
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(user_id, threading.Lock())

    @contextmanager
    def _open(self, user_id: str, persist: bool = True) -> Iterator[Tuple[CartEngine, Reconciliation]]:
        with self._lock_for(user_id):
            stored = self._carts.load(user_id)
            engine, report = CartEngine.restore(
                self._products, self._validator, stored, self._delivery_fee
            )
            if report.changed:
                logger.debug("Restored cart for %s was reconciled", user_id)
            yield engine, report
            if persist:
                self._store(user_id, engine)

    @contextmanager
    def session(self, user_id: str, persist: bool = True) -> Iterator[CartEngine]:
        """
        Locked load → mutate → save cycle; the save is skipped if the body raises.
        With `persist=False` the caller decides what to write (see `discard`).
        """
        with self._open(user_id, persist) as (engine, _report):
            yield engine

    def _store(self, user_id: str, engine: CartEngine) -> None:
        if engine.items:
            self._carts.save(user_id, engine.snapshot())
        else:
            self._carts.clear(user_id)

    def discard(self, user_id: str) -> bool:
        """
        Best-effort removal of a stored cart, for callers already inside
        `session(user_id)`. A storage failure is logged, not raised.
        """
        try:
            self._carts.clear(user_id)
        except (CollaboratorTimeout, CollaboratorUnavailable) as exc:
            logger.warning("Cart of %s could not be cleared: %s", user_id, exc.detail)
            return False
        return True

    def _run(self, user_id: str, op: Callable[[CartEngine], CartMutation]) -> CartResponse:
        with self._open(user_id) as (engine, report):
            result = op(engine)
        return _response(result.view, report, result.warning)

    # ---------- operations ----------
    def get(self, user_id: str) -> CartResponse:
        with self._lock_for(user_id):
            stored = self._carts.load(user_id)
            engine, report = CartEngine.restore(
                self._products, self._validator, stored, self._delivery_fee
            )
            if report.changed:
                # persist the reconciled cart so the next read agrees with this one
                self._store(user_id, engine)
        return _response(engine.view(), report)

    def add_item(self, user_id: str, product_id: str, quantity: int = 1) -> CartResponse:
        return self._run(user_id, lambda e: e.add_item(product_id, quantity))

    def update_quantity(self, user_id: str, product_id: str, quantity: int) -> CartResponse:
        return self._run(user_id, lambda e: e.update_quantity(product_id, quantity))

    def remove_item(self, user_id: str, product_id: str) -> CartResponse:
        return self._run(user_id, lambda e: e.remove_item(product_id))

    def clear(self, user_id: str) -> CartResponse:
        return self._run(user_id, lambda e: e.clear_cart())

    def apply_promo_code(self, user_id: str, code: str) -> CartResponse:
        return self._run(user_id, lambda e: e.apply_promo_code(code))

    def remove_promo_code(self, user_id: str) -> CartResponse:
        return self._run(user_id, lambda e: e.remove_promo_code())

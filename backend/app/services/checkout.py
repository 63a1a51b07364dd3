# app/services/checkout.py
"""
Cart → Order conversion.

Steps:
1. Reconcile the cart against the live catalogue (prices, stock, availability).
2. Reject an empty cart (`EmptyCart`).
3. Re-check an applied promo code against the reconciled subtotal.
4. Reserve stock for every line (all or nothing).
5. Store the order in `pending` with frozen price/quantity snapshots.
6. Clear the stored cart, publish `new_order`.

The cart is only cleared once the order is stored. If storing the order fails
the reservation is released and the cart is left untouched. Once the order is
stored the checkout has succeeded: failing to clear the cart afterwards is
logged and the order is still returned.
"""
import logging
import uuid
from typing import Optional

from app.core.errors import EmptyCart
from app.repositories.base import OrderRepository, ProductRepository
from app.schemas.order import Order, OrderItem, PaymentMethod, utcnow
from app.services.cart_service import CartService
from app.services.notifier import NEW_ORDER, Notifier, OrderEvent

logger = logging.getLogger("grocer.checkout")


def new_order_id() -> str:
    return f"ORD-{uuid.uuid4().hex[:12].upper()}"


class CheckoutService:
    def __init__(
        self,
        carts: CartService,
        products: ProductRepository,
        orders: OrderRepository,
        notifier: Optional[Notifier] = None,
        default_eta_minutes: int = 10,
    ):
        self._carts = carts
        self._products = products
        self._orders = orders
        self._notifier = notifier
        self._default_eta = default_eta_minutes

    def checkout(self, user_id: str, address: str, payment_method: PaymentMethod = "cash") -> Order:
        # the stored cart is only touched once the order exists
        with self._carts.session(user_id, persist=False) as engine:
            report = engine.reconcile()
            if report.changed:
                logger.info("Cart of %s changed at checkout: %s", user_id, report)
            if not engine.items:
                raise EmptyCart()
            if engine.promo_code:
                engine.apply_promo_code(engine.promo_code)

            items = tuple(
                OrderItem(
                    product_id=it.product_id,
                    name=it.name,
                    quantity=it.quantity,
                    unit_price=it.unit_price,
                )
                for it in engine.items
            )
            order = Order(
                id=new_order_id(),
                user_id=user_id,
                items=items,
                delivery_address=address,
                payment_method=payment_method,
                estimated_delivery_time=self._default_eta,
                subtotal=engine.subtotal,
                delivery_fee=engine.delivery_fee,
                discount=engine.discount,
                total=engine.total,
                promo_code=engine.promo_code,
                created_at=utcnow(),
            )

            quantities = {it.product_id: it.quantity for it in items}
            self._products.reserve(quantities)
            try:
                self._orders.create(order)
            except Exception:
                self._products.release(quantities)
                raise

            if not self._carts.discard(user_id):
                logger.warning("Order %s placed but the cart of %s was kept", order.id, user_id)

        logger.info("Order %s created for %s (total=%s)", order.id, user_id, order.total)
        self._publish(order)
        return order

    def _publish(self, order: Order) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.publish(OrderEvent.for_order(NEW_ORDER, order))
        except Exception:
            logger.exception("new_order event for %s was not published", order.id)

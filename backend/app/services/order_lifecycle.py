# app/services/order_lifecycle.py
"""
# Order Lifecycle Engine

```
pending ──► packed ──► shipped ──► delivered
   │           │
   └───────────┴──► cancelled
```

| Actor         | From             | To                                      |
|---------------|------------------|-----------------------------------------|
| admin/system  | pending          | packed                                  |
| admin/system  | pending, packed  | cancelled                               |
| delivery      | packed           | shipped (claims `delivery_partner_id`)  |
| delivery      | shipped          | delivered (own orders only)             |

`delivered` and `cancelled` are terminal. Customers have no transitions.

Every write is a single conditional update keyed on the status (and the
delivery partner) this engine observed, so two partners racing for one packed
order get exactly one success. The estimated delivery time is advisory and
never gates a transition.
"""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from app.core.errors import AlreadyAssigned, IllegalTransition, OrderNotFound
from app.repositories.base import OrderRepository
from app.schemas.order import CustomerOrders, Order, OrderStatus, OrderView
from app.services.notifier import ORDER_STATUS_UPDATED, Notifier, OrderEvent

logger = logging.getLogger("grocer.orders")

S = OrderStatus

TRANSITIONS: Dict[Tuple[str, OrderStatus], FrozenSet[OrderStatus]] = {
    ("admin", S.PENDING): frozenset({S.PACKED, S.CANCELLED}),
    ("admin", S.PACKED): frozenset({S.CANCELLED}),
    ("delivery", S.PACKED): frozenset({S.SHIPPED}),
    ("delivery", S.SHIPPED): frozenset({S.DELIVERED}),
}

# system jobs act with admin rights
_ROLE_ALIASES = {"system": "admin"}

_ORDER = [S.PENDING, S.PACKED, S.SHIPPED, S.DELIVERED, S.CANCELLED]


def _actor(role: str) -> str:
    return _ROLE_ALIASES.get(role, role)


def allowed_transitions(status: Union[OrderStatus, str], role: str) -> List[OrderStatus]:
    """Targets `role` may move an order in `status` to, in lifecycle order."""
    targets = TRANSITIONS.get((_actor(role), OrderStatus(status)), frozenset())
    return [s for s in _ORDER if s in targets]


def can_transition(status: Union[OrderStatus, str], target: Union[OrderStatus, str], role: str) -> bool:
    return OrderStatus(target) in TRANSITIONS.get((_actor(role), OrderStatus(status)), frozenset())


class OrderLifecycle:
    def __init__(self, orders: OrderRepository, notifier: Optional[Notifier] = None):
        self._orders = orders
        self._notifier = notifier

    # ---------- transitions ----------
    def transition(
        self,
        order_id: str,
        role: str,
        target: Union[OrderStatus, str],
        actor_id: str,
        estimated_delivery_time: Optional[int] = None,
    ) -> Order:
        target = OrderStatus(target)
        order = self.get(order_id)
        if not can_transition(order.status, target, role):
            raise IllegalTransition(order_id, order.status.value, target.value, role)

        fields: Dict[str, object] = {}
        expect: Dict[str, object] = {}
        if _actor(role) == "delivery":
            if target == S.SHIPPED:
                if order.delivery_partner_id not in (None, actor_id):
                    raise AlreadyAssigned(order_id, order.delivery_partner_id)
                fields["delivery_partner_id"] = actor_id
            elif order.delivery_partner_id != actor_id:
                raise AlreadyAssigned(order_id, order.delivery_partner_id)
            expect["delivery_partner_id"] = order.delivery_partner_id
        if target == S.PACKED and estimated_delivery_time is not None:
            fields["estimated_delivery_time"] = _minutes(estimated_delivery_time)

        result = self._orders.update_status(order_id, order.status, target, fields, expect)
        if not result.ok:
            # someone else moved the order between our read and the write
            current = result.order
            if (
                _actor(role) == "delivery"
                and current.delivery_partner_id not in (None, actor_id)
            ):
                raise AlreadyAssigned(order_id, current.delivery_partner_id)
            raise IllegalTransition(order_id, current.status.value, target.value, role)

        logger.info("Order %s: %s -> %s by %s %s", order_id, order.status.value, target.value, role, actor_id)
        self._publish(result.order)
        return result.order

    def assign_delivery_partner(self, order_id: str, partner_id: str) -> Order:
        """Admin pre-assignment while the order has not left the store."""
        order = self.get(order_id)
        if order.status not in (S.PENDING, S.PACKED):
            raise IllegalTransition(order_id, order.status.value, order.status.value, "admin")
        result = self._orders.update_fields(
            order_id,
            order.status,
            {"delivery_partner_id": partner_id},
            expect={"delivery_partner_id": order.delivery_partner_id},
        )
        if not result.ok:
            current = result.order
            if current.status in (S.PENDING, S.PACKED):
                raise AlreadyAssigned(order_id, current.delivery_partner_id)
            raise IllegalTransition(order_id, current.status.value, current.status.value, "admin")
        logger.info("Order %s assigned to delivery partner %s", order_id, partner_id)
        self._publish(result.order)
        return result.order

    def set_estimated_delivery_time(self, order_id: str, minutes: int, role: str = "admin") -> Order:
        minutes = _minutes(minutes)
        order = self.get(order_id)
        for _ in range(3):
            if order.status.is_terminal:
                raise IllegalTransition(order_id, order.status.value, order.status.value, role)
            result = self._orders.update_fields(order_id, order.status, {"estimated_delivery_time": minutes})
            if result.ok:
                self._publish(result.order)
                return result.order
            order = result.order
        raise IllegalTransition(order_id, order.status.value, order.status.value, role)

    # ---------- reads ----------
    def get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def view(self, order: Order, role: str, actor_id: Optional[str] = None) -> OrderView:
        actions = allowed_transitions(order.status, role)
        if _actor(role) == "delivery":
            if order.status == S.PACKED and order.delivery_partner_id not in (None, actor_id):
                actions = []
            elif order.status == S.SHIPPED and order.delivery_partner_id != actor_id:
                actions = []
        return OrderView(order=order, allowed_actions=actions)

    def visible_order(self, order_id: str, role: str, actor_id: str) -> OrderView:
        """Single order as `role` may see it; hidden orders look missing."""
        order = self.get(order_id)
        actor = _actor(role)
        if actor == "customer" and order.user_id != actor_id:
            raise OrderNotFound(order_id)
        if actor == "delivery" and order.delivery_partner_id != actor_id and not (
            order.status == S.PACKED and order.delivery_partner_id is None
        ):
            raise OrderNotFound(order_id)
        return self.view(order, role, actor_id)

    def orders_for_customer(self, user_id: str) -> CustomerOrders:
        out = CustomerOrders()
        for order in self._orders.list(user_id=user_id):
            bucket = out.past if order.status.is_terminal else out.active
            bucket.append(self.view(order, "customer", user_id))
        return out

    def orders_for_admin(self, status: Optional[Union[OrderStatus, str]] = None) -> List[OrderView]:
        wanted = OrderStatus(status) if status is not None else None
        return [self.view(o, "admin") for o in self._orders.list(status=wanted)]

    def available_for_delivery(self, partner_id: str) -> List[OrderView]:
        return [
            self.view(o, "delivery", partner_id)
            for o in self._orders.list(status=S.PACKED)
            if o.delivery_partner_id in (None, partner_id)
        ]

    def orders_for_partner(self, partner_id: str) -> List[OrderView]:
        return [
            self.view(o, "delivery", partner_id)
            for o in self._orders.list(delivery_partner_id=partner_id)
        ]

    # ---------- events ----------
    def _publish(self, order: Order) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.publish(OrderEvent.for_order(ORDER_STATUS_UPDATED, order))
        except Exception:
            logger.exception("Order event for %s was not published", order.id)


def _minutes(value: int) -> int:
    value = int(value)
    if value < 0:
        raise ValueError("estimated_delivery_time cannot be negative")
    return value

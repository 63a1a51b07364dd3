"""
# `app/routers/orders.py` — Orders

## Customer
- `POST /orders` → checkout: converts the caller's cart into a `pending` order
  (cart must not be empty; stock is reserved; the cart is cleared).
- `GET /orders/my` → `{active: [...], past: [...]}`
- `GET /orders/{order_id}` → one order with the caller's `allowed_actions`
  (customers only see their own orders; delivery partners see orders assigned
  to them or still open for claiming).

## Admin (`role=admin`)
- `GET /admin/orders?status=` → all orders, newest first
- `POST /admin/orders/{order_id}/pack` → pending → packed (optional ETA)
- `POST /admin/orders/{order_id}/cancel` → pending/packed → cancelled
- `POST /admin/orders/{order_id}/assign` → pre-assign a delivery partner
- `POST /admin/orders/{order_id}/eta` → advisory ETA in minutes

Illegal moves answer `409 illegal_transition`; nothing is changed.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_admin, get_current_customer, get_principal
from app.schemas.order import (
    AssignBody,
    CheckoutBody,
    CustomerOrders,
    EtaBody,
    OrderStatus,
    OrderView,
    PackBody,
)
from app.schemas.principal import Principal
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/orders", tags=["Admin Orders"])


@router.post("", response_model=OrderView, status_code=status.HTTP_201_CREATED)
def checkout(
    body: CheckoutBody,
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    order = services.checkout.checkout(principal.uid, body.delivery_address, body.payment_method)
    return services.lifecycle.view(order, principal.role, principal.uid)


@router.get("/my", response_model=CustomerOrders)
def my_orders(
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.lifecycle.orders_for_customer(principal.uid)


@router.get("/{order_id}", response_model=OrderView)
def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.lifecycle.visible_order(order_id, principal.role, principal.uid)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

@admin_router.get("", response_model=List[OrderView])
def admin_list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    admin: Principal = Depends(get_current_admin),
    services: ServiceContainer = Depends(get_services),
):
    return services.lifecycle.orders_for_admin(status_filter)


@admin_router.post("/{order_id}/pack", response_model=OrderView)
def admin_pack_order(
    order_id: str,
    body: Optional[PackBody] = None,
    admin: Principal = Depends(get_current_admin),
    services: ServiceContainer = Depends(get_services),
):
    eta = body.estimated_delivery_time if body else None
    order = services.lifecycle.transition(order_id, admin.role, OrderStatus.PACKED, admin.uid, eta)
    return services.lifecycle.view(order, admin.role, admin.uid)


@admin_router.post("/{order_id}/cancel", response_model=OrderView)
def admin_cancel_order(
    order_id: str,
    admin: Principal = Depends(get_current_admin),
    services: ServiceContainer = Depends(get_services),
):
    order = services.lifecycle.transition(order_id, admin.role, OrderStatus.CANCELLED, admin.uid)
    return services.lifecycle.view(order, admin.role, admin.uid)


@admin_router.post("/{order_id}/assign", response_model=OrderView)
def admin_assign_partner(
    order_id: str,
    body: AssignBody,
    admin: Principal = Depends(get_current_admin),
    services: ServiceContainer = Depends(get_services),
):
    order = services.lifecycle.assign_delivery_partner(order_id, body.delivery_partner_id)
    return services.lifecycle.view(order, admin.role, admin.uid)


@admin_router.post("/{order_id}/eta", response_model=OrderView)
def admin_set_eta(
    order_id: str,
    body: EtaBody,
    admin: Principal = Depends(get_current_admin),
    services: ServiceContainer = Depends(get_services),
):
    order = services.lifecycle.set_estimated_delivery_time(order_id, body.estimated_delivery_time)
    return services.lifecycle.view(order, admin.role, admin.uid)

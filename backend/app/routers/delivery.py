"""
Delivery partner console (`role=delivery`).

- GET  /delivery/orders/available     → packed orders nobody else has claimed
- GET  /delivery/orders/mine          → every order assigned to the caller
- POST /delivery/orders/{id}/claim    → packed → shipped, assigns the caller
- POST /delivery/orders/{id}/deliver  → shipped → delivered (own orders only)

Two partners claiming the same order: one gets 200, the other 409
`already_assigned`.
"""
from typing import List

from fastapi import APIRouter, Depends

from app.core.auth import get_current_delivery
from app.schemas.order import OrderStatus, OrderView
from app.schemas.principal import Principal
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/delivery/orders", tags=["Delivery"])


@router.get("/available", response_model=List[OrderView])
def available_orders(
    partner: Principal = Depends(get_current_delivery),
    services: ServiceContainer = Depends(get_services),
):
    return services.lifecycle.available_for_delivery(partner.uid)


@router.get("/mine", response_model=List[OrderView])
def my_deliveries(
    partner: Principal = Depends(get_current_delivery),
    services: ServiceContainer = Depends(get_services),
):
    return services.lifecycle.orders_for_partner(partner.uid)


@router.post("/{order_id}/claim", response_model=OrderView)
def claim_order(
    order_id: str,
    partner: Principal = Depends(get_current_delivery),
    services: ServiceContainer = Depends(get_services),
):
    order = services.lifecycle.transition(order_id, partner.role, OrderStatus.SHIPPED, partner.uid)
    return services.lifecycle.view(order, partner.role, partner.uid)


@router.post("/{order_id}/deliver", response_model=OrderView)
def deliver_order(
    order_id: str,
    partner: Principal = Depends(get_current_delivery),
    services: ServiceContainer = Depends(get_services),
):
    order = services.lifecycle.transition(order_id, partner.role, OrderStatus.DELIVERED, partner.uid)
    return services.lifecycle.view(order, partner.role, partner.uid)

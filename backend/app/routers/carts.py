"""
app/routers/carts.py
Cart endpoints (logged-in customers). Every response is a `CartResponse`:
the recomputed cart view plus a `warning` when a quantity was clamped to stock.

- GET    /cart                       → current cart (reconciled with the catalogue)
- POST   /cart/items                 → add by product id (+quantity)
- PATCH  /cart/items/{product_id}    → set quantity (0 or less removes the line)
- DELETE /cart/items/{product_id}    → remove one line (no-op when absent)
- DELETE /cart                       → clear everything, promo included
- POST   /cart/promo                 → apply a promo code
- DELETE /cart/promo                 → drop the promo code
"""
from fastapi import APIRouter, Depends

from app.core.auth import get_current_customer
from app.schemas.cart import AddItemBody, ApplyPromoBody, CartResponse, UpdateQuantityBody
from app.schemas.principal import Principal
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartResponse)
def get_cart(
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.carts.get(principal.uid)


@router.post("/items", response_model=CartResponse)
def add_item(
    body: AddItemBody,
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.carts.add_item(principal.uid, body.product_id.strip(), body.quantity)


@router.patch("/items/{product_id}", response_model=CartResponse)
def update_item(
    product_id: str,
    body: UpdateQuantityBody,
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.carts.update_quantity(principal.uid, product_id, body.quantity)


@router.delete("/items/{product_id}", response_model=CartResponse)
def remove_item(
    product_id: str,
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.carts.remove_item(principal.uid, product_id)


@router.delete("", response_model=CartResponse)
def clear_cart(
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.carts.clear(principal.uid)


@router.post("/promo", response_model=CartResponse)
def apply_promo(
    body: ApplyPromoBody,
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.carts.apply_promo_code(principal.uid, body.code)


@router.delete("/promo", response_model=CartResponse)
def remove_promo(
    principal: Principal = Depends(get_current_customer),
    services: ServiceContainer = Depends(get_services),
):
    return services.carts.remove_promo_code(principal.uid)

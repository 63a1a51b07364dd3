"""
# `app/routers/products.py` — Catalogue

## Storefront
- `GET /products?category_id=` → active products (optionally one category)
- `GET /products/{product_id}` → one product (inactive products are 404 too)

## Admin (`role=admin`)
- `POST /admin/products` → create a product (`ProductCreate`)
- `PATCH /admin/products/{product_id}` → partial update (`ProductUpdate`);
  price, discount price, stock and the active flag are re-validated together
  (`422 invalid_update` when the merged product is invalid).
- `DELETE /admin/products/{product_id}?hard=false`
  - `hard=false` → product is deactivated (hidden, kept for reference)
  - `hard=true` → document is removed

Prices are integers in paise. Carts pick up price and stock changes on their
next read or mutation; placed orders keep their own snapshots.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_admin
from app.schemas.product import Product, ProductCreate, ProductUpdate
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/products", tags=["Products"])
admin_router = APIRouter(
    prefix="/products",
    tags=["Admin: Products"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("", response_model=List[Product])
def list_products(
    category_id: Optional[str] = Query(None, description="Filter by category id"),
    services: ServiceContainer = Depends(get_services),
):
    return services.catalog.list_products(category_id)


@router.get("/{product_id}", response_model=Product)
def get_product(product_id: str, services: ServiceContainer = Depends(get_services)):
    return services.catalog.get_product(product_id)


@admin_router.post("", response_model=Product, status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, services: ServiceContainer = Depends(get_services)):
    return services.catalog.create_product(payload)


@admin_router.patch("/{product_id}", response_model=Product)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    services: ServiceContainer = Depends(get_services),
):
    return services.catalog.update_product(product_id, payload)


@admin_router.delete("/{product_id}", response_model=Dict[str, str])
def delete_product(
    product_id: str,
    hard: bool = Query(False, description="Remove the document instead of deactivating it"),
    services: ServiceContainer = Depends(get_services),
):
    return services.catalog.delete_product(product_id, hard)

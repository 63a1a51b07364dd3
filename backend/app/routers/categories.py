"""
Categories.

Public:
- GET /categories → active categories

Admin (`role=admin`):
- POST   /admin/categories                 → create
- PATCH  /admin/categories/{category_id}   → partial update
- DELETE /admin/categories/{category_id}   → deactivate (`?hard=true` removes it)

Products keep their `category_id` when a category goes away; they simply no
longer show up under a visible category.
"""
from typing import Dict, List

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_admin
from app.schemas.product import Category, CategoryCreate, CategoryUpdate
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/categories", tags=["Categories"])
admin_router = APIRouter(
    prefix="/categories",
    tags=["Admin: Categories"],
    dependencies=[Depends(get_current_admin)],
)


@router.get("", response_model=List[Category], summary="List Categories")
def list_categories(services: ServiceContainer = Depends(get_services)):
    return services.catalog.list_categories()


@admin_router.post("", response_model=Category, status_code=status.HTTP_201_CREATED, summary="Create Category")
def create_category(payload: CategoryCreate, services: ServiceContainer = Depends(get_services)):
    return services.catalog.create_category(payload)


@admin_router.patch("/{category_id}", response_model=Category, summary="Update Category")
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    services: ServiceContainer = Depends(get_services),
):
    return services.catalog.update_category(category_id, payload)


@admin_router.delete("/{category_id}", response_model=Dict[str, str], summary="Delete Category")
def delete_category(
    category_id: str,
    hard: bool = Query(False),
    services: ServiceContainer = Depends(get_services),
):
    return services.catalog.delete_category(category_id, hard)

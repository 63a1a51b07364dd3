"""
app/routers/discounts.py — Promo codes.

Admin (`role=admin`):
- GET    /admin/promo-codes            → every code, alphabetical
- POST   /admin/promo-codes            → create (code is upper-cased)
- PATCH  /admin/promo-codes/{code}     → partial update
- DELETE /admin/promo-codes/{code}     → deactivate (codes are never deleted)

Public:
- POST /promo-codes/validate → `PromoValidation` for a code and a subtotal.
  Never raises for bad codes; `valid=false` plus a `reason` instead.
"""
from typing import List

from fastapi import APIRouter, Depends, status

from app.core.auth import get_current_admin
from app.schemas.discount import (
    PromoCode,
    PromoCodeCreate,
    PromoCodeUpdate,
    PromoValidateBody,
    PromoValidation,
)
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/promo-codes", tags=["Promo Codes"])
admin_router = APIRouter(
    prefix="/promo-codes",
    tags=["Admin: Promo Codes"],
    dependencies=[Depends(get_current_admin)],
)


@router.post("/validate", response_model=PromoValidation)
def validate_promo(body: PromoValidateBody, services: ServiceContainer = Depends(get_services)):
    return services.promos.validate(body.code, body.subtotal)


@admin_router.get("", response_model=List[PromoCode])
def list_promo_codes(services: ServiceContainer = Depends(get_services)):
    return services.promos.list()


@admin_router.post("", response_model=PromoCode, status_code=status.HTTP_201_CREATED)
def create_promo_code(payload: PromoCodeCreate, services: ServiceContainer = Depends(get_services)):
    return services.promos.create(payload)


@admin_router.patch("/{code}", response_model=PromoCode)
def update_promo_code(code: str, payload: PromoCodeUpdate, services: ServiceContainer = Depends(get_services)):
    return services.promos.update(code, payload)


@admin_router.delete("/{code}", response_model=PromoCode)
def deactivate_promo_code(code: str, services: ServiceContainer = Depends(get_services)):
    return services.promos.deactivate(code)

# app/services/promo_service.py
"""
Promo code validation and admin management.

`validate(code, subtotal)` is the validator the cart engine delegates to:

| Situation                         | Result                                    |
|-----------------------------------|-------------------------------------------|
| unknown code                      | invalid, reason `not_found`               |
| inactive code                     | invalid, reason `inactive`                |
| past `expires_at`                 | invalid, reason `expired`                 |
| `subtotal < min_order`            | invalid, reason `min_order` (+ min_order) |
| percent code                      | `subtotal * pct // 100`, capped           |
| flat code                         | `discount`                                |

The amount is always clamped to `[0, subtotal]`.
"""
import logging
from datetime import datetime, timezone
from typing import List

from pydantic import ValidationError

from app.core.errors import InvalidPromoCode, InvalidUpdate
from app.repositories.base import PromoRepository
from app.schemas.discount import PromoCode, PromoCodeCreate, PromoCodeUpdate, PromoValidation

logger = logging.getLogger("grocer.promo")


def _as_aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def discount_for(promo: PromoCode, subtotal: int) -> int:
    if promo.discount_type == "percent":
        amount = subtotal * promo.discount // 100
        if promo.max_discount is not None:
            amount = min(amount, promo.max_discount)
    else:
        amount = promo.discount
    return max(0, min(amount, subtotal))


class PromoService:
    def __init__(self, repo: PromoRepository, clock=None):
        self._repo = repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def validate(self, code: str, subtotal: int) -> PromoValidation:
        promo = self._repo.get(code)
        if promo is None:
            return PromoValidation(valid=False, reason="not_found")
        if not promo.is_active:
            return PromoValidation(valid=False, reason="inactive")
        if promo.expires_at and _as_aware(promo.expires_at) <= self._clock():
            return PromoValidation(valid=False, reason="expired")
        if promo.min_order is not None and subtotal < promo.min_order:
            return PromoValidation(valid=False, reason="min_order", min_order=promo.min_order)
        return PromoValidation(
            valid=True,
            discount_amount=discount_for(promo, subtotal),
            min_order=promo.min_order,
        )

    # ---------- admin ----------
    def list(self) -> List[PromoCode]:
        return sorted(self._repo.list(), key=lambda p: p.code)

    def get(self, code: str) -> PromoCode:
        promo = self._repo.get(code)
        if promo is None:
            raise InvalidPromoCode(code, "not_found")
        return promo

    def create(self, payload: PromoCodeCreate) -> PromoCode:
        promo = PromoCode(**payload.model_dump())
        self._repo.save(promo)
        logger.info("Promo code %s saved", promo.code)
        return promo

    def update(self, code: str, payload: PromoCodeUpdate) -> PromoCode:
        current = self.get(code)
        changes = payload.model_dump(exclude_unset=True)
        # re-validate through the model so percent bounds still hold
        try:
            promo = PromoCode(**{**current.model_dump(), **changes})
        except ValidationError as exc:
            raise InvalidUpdate.from_validation("promo code", exc) from exc
        self._repo.save(promo)
        return promo

    def deactivate(self, code: str) -> PromoCode:
        return self.update(code, PromoCodeUpdate(is_active=False))

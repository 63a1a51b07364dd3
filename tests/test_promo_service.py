"""Tests for promo validation and admin management."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.core.errors import InvalidPromoCode
from app.repositories.memory import MemoryPromoRepository
from app.schemas.discount import PromoCode, PromoCodeCreate, PromoCodeUpdate
from app.services.promo_service import PromoService, discount_for


class TestValidate:
    def test_percent_with_cap(self, promos):
        assert promos.validate("HALF", 8000).discount_amount == 4000
        assert promos.validate("HALF", 50000).discount_amount == 10000

    def test_min_order(self, promos):
        result = promos.validate("FIRST10", 19999)
        assert result.valid is False
        assert result.reason == "min_order"
        assert result.min_order == 20000
        ok = promos.validate("FIRST10", 20000)
        assert ok.valid is True
        assert ok.discount_amount == 2000

    def test_flat_is_clamped_to_subtotal(self, promos):
        assert promos.validate("HUGE", 1234).discount_amount == 1234
        assert promos.validate("FLAT50", 0).discount_amount == 0

    @pytest.mark.parametrize("code,reason", [("nope", "not_found"), ("OLD", "expired"), ("OFF", "inactive")])
    def test_rejections(self, promos, code, reason):
        result = promos.validate(code, 50000)
        assert result.valid is False
        assert result.reason == reason
        assert result.discount_amount == 0

    def test_lookup_ignores_case_and_spaces(self, promos):
        assert promos.validate("  first10 ", 30000).valid is True

    def test_naive_expiry_is_treated_as_utc(self):
        past = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(minutes=1)
        service = PromoService(MemoryPromoRepository([PromoCode(code="NAIVE", discount=5, expires_at=past)]))
        assert service.validate("NAIVE", 10000).reason == "expired"

    def test_sample_first_order_code(self):
        promo = PromoCode(code="FIRST10", discount=10, max_discount=10000, min_order=20000)
        assert discount_for(promo, 250000) == 10000


class TestAdmin:
    def test_create_normalises_code(self, promos):
        promo = promos.create(PromoCodeCreate(code=" diwali ", discount=15))
        assert promo.code == "DIWALI"
        assert promos.validate("diwali", 10000).discount_amount == 1500

    def test_percent_above_hundred_rejected(self):
        with pytest.raises(ValidationError):
            PromoCodeCreate(code="X", discount=150)

    def test_update_and_deactivate(self, promos):
        promos.update("FLAT50", PromoCodeUpdate(discount=7000))
        assert promos.validate("FLAT50", 50000).discount_amount == 7000
        promos.deactivate("FLAT50")
        assert promos.validate("FLAT50", 50000).reason == "inactive"

    def test_update_unknown(self, promos):
        with pytest.raises(InvalidPromoCode):
            promos.update("NOPE", PromoCodeUpdate(discount=5))

    def test_list_sorted(self, promos):
        codes = [p.code for p in promos.list()]
        assert codes == sorted(codes)

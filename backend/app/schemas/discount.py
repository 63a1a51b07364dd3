"""
app/schemas/discount.py - Pydantic models for promo codes.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

DiscountType = Literal["percent", "flat"]


class PromoCodeCreate(BaseModel):
    code: str = Field(..., description="Code customers type at checkout")
    discount_type: DiscountType = Field("percent", description="percent | flat")
    discount: int = Field(..., gt=0, description="Percentage (1-100) or flat amount in minor units")
    max_discount: Optional[int] = Field(None, ge=0, description="Cap for percent codes")
    min_order: Optional[int] = Field(None, ge=0, description="Minimum subtotal")
    is_active: bool = True
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if not v:
            raise ValueError("code cannot be empty")
        return v

    @field_validator("discount")
    @classmethod
    def _percent_range(cls, v, info):
        if info.data.get("discount_type") == "percent" and v > 100:
            raise ValueError("percent discount must be between 1 and 100")
        return v


class PromoCodeUpdate(BaseModel):
    discount: Optional[int] = Field(None, gt=0)
    max_discount: Optional[int] = Field(None, ge=0)
    min_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None


class PromoCode(PromoCodeCreate):
    pass


class PromoValidation(BaseModel):
    """Answer of the promo validator collaborator."""
    valid: bool
    discount_amount: int = 0
    min_order: Optional[int] = None
    reason: Optional[str] = None


class PromoValidateBody(BaseModel):
    code: str
    subtotal: int = Field(0, ge=0)

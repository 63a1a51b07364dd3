# app/schemas/order.py
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def _missing_(cls, value):
        # delivery console name for the same state
        if isinstance(value, str) and value.strip().lower() == "out_for_delivery":
            return cls.SHIPPED
        return None

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


PaymentMethod = Literal["cash", "upi", "card", "wallet"]
PaymentStatus = Literal["pending", "paid", "failed"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderItem(BaseModel):
    """Price/quantity snapshot taken at checkout. Never changes afterwards."""
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str = ""
    quantity: int = Field(..., gt=0)
    unit_price: int = Field(..., ge=0)

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class Order(BaseModel):
    """
    Immutable order value. Repositories hand out new instances on every change,
    so a reader never observes a half-applied update.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    items: Tuple[OrderItem, ...]
    status: OrderStatus = OrderStatus.PENDING
    delivery_address: str
    payment_method: PaymentMethod = "cash"
    payment_status: PaymentStatus = "pending"
    delivery_partner_id: Optional[str] = None
    estimated_delivery_time: Optional[int] = Field(None, ge=0, description="Minutes, advisory only")
    subtotal: int = 0
    delivery_fee: int = 0
    discount: int = 0
    total: int = 0
    promo_code: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class OrderView(BaseModel):
    """Order as rendered for one role, with the actions that role may take next."""
    order: Order
    allowed_actions: List[OrderStatus] = Field(default_factory=list)


class CustomerOrders(BaseModel):
    active: List[OrderView] = Field(default_factory=list)
    past: List[OrderView] = Field(default_factory=list)


# ---------- request bodies ----------
class CheckoutBody(BaseModel):
    delivery_address: str = Field(..., min_length=3)
    payment_method: PaymentMethod = "cash"


class PackBody(BaseModel):
    estimated_delivery_time: Optional[int] = Field(None, ge=0, description="Minutes")


class AssignBody(BaseModel):
    delivery_partner_id: str = Field(..., min_length=1)


class EtaBody(BaseModel):
    estimated_delivery_time: int = Field(..., ge=0)

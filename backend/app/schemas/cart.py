"""
app/schemas/cart.py - Pydantic models for Cart.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class CartItem(BaseModel):
    product_id: str = Field(..., description="ID of the product")
    name: str = Field("", description="Name of the product")
    quantity: int = Field(..., gt=0, description="Quantity of the product in the cart")
    price: int = Field(..., ge=0, description="Regular unit price at the last reconciliation")
    discount_price: Optional[int] = Field(None, ge=0)
    stock: int = Field(..., ge=0, description="Stock seen at the last reconciliation")

    @computed_field
    @property
    def unit_price(self) -> int:
        return self.discount_price if self.discount_price is not None else self.price

    @computed_field
    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class StoredCartItem(BaseModel):
    product_id: str
    qty: int = Field(..., gt=0)


class StoredCart(BaseModel):
    """Persisted shape of a cart (carts/{uid})."""
    items: List[StoredCartItem] = Field(default_factory=list)
    promo_code: Optional[str] = None
    discount: int = 0


class CartView(BaseModel):
    """Read model returned to the storefront."""
    items: List[CartItem] = Field(default_factory=list)
    item_count: int = 0
    subtotal: int = 0
    delivery_fee: int = 0
    discount: int = 0
    total: int = 0
    promo_code: Optional[str] = None


class CartWarning(BaseModel):
    code: str
    detail: str
    product_id: str
    requested: int
    clamped: int


class CartResponse(BaseModel):
    cart: CartView
    warning: Optional[CartWarning] = None
    # every clamp seen in this request (stored lines and the mutation itself)
    warnings: List[CartWarning] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list, description="Lines dropped as unavailable")


# ---------- request bodies ----------
class AddItemBody(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=10000)


class UpdateQuantityBody(BaseModel):
    quantity: int = Field(..., le=10000, description="0 or less removes the line")


class ApplyPromoBody(BaseModel):
    code: str = Field(..., min_length=1)

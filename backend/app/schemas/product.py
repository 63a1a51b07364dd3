"""
# `app/schemas/product.py` — Product & Category schemas

| Field          | Type         | Notes |
|----------------|--------------|-------|
| price          | `int`        | paise, ≥ 0 |
| discount_price | `int`/`null` | paise, ≤ price |
| stock          | `int`        | ≥ 0 |
| is_active      | `bool`       | inactive products cannot be added to a cart |

`effective_price` is the discounted price when set, otherwise the regular price.
"""
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class ProductBase(BaseModel):
    """Common product fields for creation/update."""
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field("", description="Detailed description of the product")
    unit: str = Field("", description="Pack size, e.g. '500g' or '6 pcs'")
    image: str = Field("", description="Image URL")
    category_id: Optional[str] = Field(None, description="Category ID")
    price: int = Field(..., ge=0, description="Price in minor units")
    discount_price: Optional[int] = Field(None, ge=0, description="Discounted price in minor units")
    stock: int = Field(0, ge=0, description="Units in stock")
    is_active: bool = Field(True, description="Whether the product can be sold")

    @model_validator(mode="after")
    def _discount_not_above_price(self):
        if self.discount_price is not None and self.discount_price > self.price:
            raise ValueError("discount_price cannot exceed price")
        return self


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    image: Optional[str] = None
    category_id: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    discount_price: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class Product(ProductBase):
    id: str

    @property
    def effective_price(self) -> int:
        return self.discount_price if self.discount_price is not None else self.price

    @property
    def available(self) -> bool:
        return self.is_active and self.stock > 0


class Category(BaseModel):
    id: str
    name: str
    icon: str = ""
    color: str = ""
    is_active: bool = True


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Category name")
    icon: str = Field("", description="Icon class shown in the storefront")
    color: str = Field("", description="Theme colour key")


class CategoryUpdate(BaseModel):
    """Optional fields for a partial category update."""
    name: Optional[str] = Field(None, min_length=1)
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None

"""
app/schemas/principal.py
Roles and the Principal model handed to every engine call by the identity layer.
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field

Role = Literal["customer", "admin", "delivery", "system"]


class Principal(BaseModel):
    uid: str = Field(..., description="User ID")
    role: Role = Field(..., description="customer | admin | delivery | system")
    phone: Optional[str] = Field(None, description="Phone number (if known)")
    display_name: Optional[str] = Field(None, description="Display name (if known)")

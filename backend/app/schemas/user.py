"""
# `app/schemas/user.py` — User, OTP and login schemas

## Common types
- **PhoneStr**: exactly 10 digits once spaces, dashes and a leading `+91`/`0` are stripped.

## Login flow
1. `POST /auth/send-otp` with `SendOtpRequest` → `SendOtpResponse`
   (`otp` is only filled in debug mode).
2. `POST /auth/verify-otp` with `VerifyOtpRequest` → `LoginResponse`
   (`token` is a Firebase custom token carrying the `role` claim, or a
   development mock token in debug mode).
"""
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.principal import Role

PHONE_PATTERN = re.compile(r"^\d{10}$")


def normalize_phone(raw: str) -> Optional[str]:
    """Strips formatting and the Indian country prefix; None when not a 10-digit number."""
    digits = re.sub(r"\D+", "", raw or "")
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    return digits if PHONE_PATTERN.fullmatch(digits) else None


class User(BaseModel):
    id: str
    phone: str
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    role: Role = "customer"
    is_active: bool = True
    created_at: Optional[datetime] = None


class UserProfileUpdate(BaseModel):
    """Fields a user may change on their own profile. Phone and role are not among them."""
    name: Optional[str] = Field(None, min_length=1, max_length=80)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, min_length=3)


class OtpRecord(BaseModel):
    """One outstanding OTP per phone. Only the HMAC of the code is stored."""
    phone: str
    code_hash: str
    expires_at_unix: int
    attempts: int = 0
    consumed: bool = False


class SendOtpRequest(BaseModel):
    phone: str = Field(..., min_length=10, max_length=16)


class SendOtpResponse(BaseModel):
    success: bool = True
    message: str = "OTP sent successfully"
    otp: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    phone: str = Field(..., min_length=10, max_length=16)
    otp: str = Field(..., min_length=4, max_length=8)

    @field_validator("otp")
    @classmethod
    def _digits_only(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError("otp must be numeric")
        return v


class LoginResponse(BaseModel):
    success: bool = True
    is_new_user: bool
    user: User
    token: str

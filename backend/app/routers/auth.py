"""
# app/routers/auth.py — Phone / OTP login

## Endpoints

### POST /auth/send-otp
Body: `{"phone": "9876543210"}` (spaces, dashes, `+91` or a leading `0` are accepted)

1. The number is normalised to 10 digits (`422 invalid_phone` otherwise).
2. A 6-digit code is generated, hashed and stored with a 10 minute expiry,
   replacing any earlier code for the number.
3. The code is sent by SMS. In debug mode it is also returned as `otp`.

### POST /auth/verify-otp
Body: `{"phone": "...", "otp": "123456"}`

1. Wrong code → `400 invalid_otp` (attempt counted), expired → `400 otp_expired`,
   too many wrong attempts → `429 too_many_otp_attempts`.
2. On success the user is looked up by phone or created as a customer.
3. Answer: `LoginResponse` with `is_new_user` and a session `token`.
"""
from fastapi import APIRouter, Depends

from app.schemas.user import LoginResponse, SendOtpRequest, SendOtpResponse, VerifyOtpRequest
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/send-otp", response_model=SendOtpResponse, summary="Send login OTP")
def send_otp(body: SendOtpRequest, services: ServiceContainer = Depends(get_services)):
    return services.otp.send_otp(body.phone)


@router.post("/verify-otp", response_model=LoginResponse, summary="Verify OTP and log in")
def verify_otp(body: VerifyOtpRequest, services: ServiceContainer = Depends(get_services)):
    return services.otp.verify_otp(body.phone, body.otp)

# app/services/otp_service.py
"""
Phone number + OTP login.

send_otp(phone)
    One outstanding code per phone. The code is hashed (HMAC-SHA256 keyed by
    OTP_SECRET) before it is stored; a new request replaces the old record and
    resets the attempt counter. In debug mode the plain code is echoed back.

verify_otp(phone, code)
    no record / consumed  → InvalidOtp
    past expiry           → OtpExpired (record consumed)
    attempts exhausted    → TooManyOtpAttempts (record consumed)
    wrong code            → InvalidOtp (attempt counted)
    ok                    → record consumed, user found or created, session token issued
"""
import logging
import time
from typing import Callable, Optional

from app.config import Settings
from app.core.crypto import gen_numeric_code, hashes_match, hmac_hash
from app.core.errors import InvalidOtp, InvalidPhone, OtpExpired, TooManyOtpAttempts
from app.integrations.sms_gateway import SmsGateway
from app.repositories.base import OtpRepository, UserRepository
from app.schemas.user import LoginResponse, OtpRecord, SendOtpResponse, User, normalize_phone

logger = logging.getLogger("grocer.otp")

TokenIssuer = Callable[[User], str]


class OtpService:
    def __init__(
        self,
        otps: OtpRepository,
        users: UserRepository,
        sms: SmsGateway,
        issue_token: TokenIssuer,
        cfg: Settings,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._otps = otps
        self._users = users
        self._sms = sms
        self._issue_token = issue_token
        self._cfg = cfg
        self._clock = clock or time.time

    def _now(self) -> int:
        return int(self._clock())

    def _hash(self, phone: str, code: str) -> str:
        return hmac_hash(phone, code, self._cfg.otp_secret)

    def send_otp(self, raw_phone: str) -> SendOtpResponse:
        phone = normalize_phone(raw_phone)
        if phone is None:
            raise InvalidPhone()

        code = gen_numeric_code(self._cfg.otp_length)
        self._otps.replace(OtpRecord(
            phone=phone,
            code_hash=self._hash(phone, code),
            expires_at_unix=self._now() + self._cfg.otp_ttl_seconds,
        ))
        self._sms.send_otp(phone, code)
        logger.info("OTP issued for ******%s", phone[-4:])
        return SendOtpResponse(otp=code if self._cfg.debug else None)

    def verify_otp(self, raw_phone: str, code: str) -> LoginResponse:
        phone = normalize_phone(raw_phone)
        if phone is None:
            raise InvalidPhone()

        rec = self._otps.get(phone)
        if rec is None or rec.consumed:
            raise InvalidOtp()

        if self._now() > rec.expires_at_unix:
            self._otps.consume(phone)
            raise OtpExpired()

        if rec.attempts >= self._cfg.otp_max_attempts:
            self._otps.consume(phone)
            raise TooManyOtpAttempts()

        if not hashes_match(self._hash(phone, code.strip()), rec.code_hash):
            self._otps.increment_attempt(phone)
            raise InvalidOtp()

        self._otps.consume(phone)

        user = self._users.get_by_phone(phone)
        is_new = user is None
        if is_new:
            user = self._users.create(phone)
            logger.info("New customer registered: %s", user.id)

        return LoginResponse(is_new_user=is_new, user=user, token=self._issue_token(user))

    def purge_expired(self) -> int:
        n = self._otps.purge_expired(self._now())
        if n:
            logger.info("Purged %d stale OTP records", n)
        return n

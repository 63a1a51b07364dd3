"""Tests for phone/OTP login."""

from functools import partial

import pytest

from app.core.auth import issue_session_token
from app.core.errors import InvalidOtp, InvalidPhone, OtpExpired, TooManyOtpAttempts
from app.repositories.memory import MemoryOtpRepository, MemoryUserRepository, sample_users
from app.services.otp_service import OtpService

PHONE = "9123456780"


class FakeClock:
    def __init__(self, now=1_700_000_000):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def otp_repo():
    return MemoryOtpRepository()


@pytest.fixture
def users():
    return MemoryUserRepository(sample_users())


@pytest.fixture
def otp(otp_repo, users, sms, cfg, clock):
    return OtpService(otp_repo, users, sms, partial(issue_session_token, cfg=cfg), cfg, clock)


def wrong(code):
    return "000000" if code != "000000" else "111111"


class TestSendOtp:
    def test_code_is_sent_and_hashed(self, otp, otp_repo, sms):
        response = otp.send_otp(PHONE)
        assert response.success is True
        assert len(response.otp) == 6 and response.otp.isdigit()
        assert sms.sent == [(PHONE, response.otp)]
        record = otp_repo.get(PHONE)
        assert record.code_hash != response.otp
        assert record.attempts == 0

    def test_phone_is_normalised(self, otp, sms):
        otp.send_otp("+91 91234-56780")
        assert sms.sent[0][0] == PHONE

    @pytest.mark.parametrize("phone", ["12345", "abcdefghij", "+1 415 555 0100"])
    def test_invalid_phone(self, otp, phone):
        with pytest.raises(InvalidPhone):
            otp.send_otp(phone)

    def test_code_hidden_outside_debug(self, otp_repo, users, sms, cfg, clock):
        live = cfg.model_copy(update={"debug": False})
        service = OtpService(otp_repo, users, sms, lambda u: "t", live, clock)
        assert service.send_otp(PHONE).otp is None
        assert sms.sent

    def test_new_request_replaces_old_code(self, otp):
        first = otp.send_otp(PHONE).otp
        second = otp.send_otp(PHONE).otp
        if first != second:
            with pytest.raises(InvalidOtp):
                otp.verify_otp(PHONE, first)
        assert otp.verify_otp(PHONE, second).success


class TestVerifyOtp:
    def test_new_user_login(self, otp, users):
        code = otp.send_otp(PHONE).otp
        login = otp.verify_otp(PHONE, code)
        assert login.is_new_user is True
        assert login.user.phone == PHONE
        assert login.user.role == "customer"
        assert login.token == f"mock_jwt_token_customer_{login.user.id}"
        assert users.get_by_phone(PHONE).id == login.user.id

    def test_existing_staff_keeps_role(self, otp):
        code = otp.send_otp("9876543211").otp
        login = otp.verify_otp("9876543211", code)
        assert login.is_new_user is False
        assert login.user.role == "delivery"
        assert login.token == "mock_jwt_token_delivery_delivery-1"

    def test_code_is_single_use(self, otp):
        code = otp.send_otp(PHONE).otp
        otp.verify_otp(PHONE, code)
        with pytest.raises(InvalidOtp):
            otp.verify_otp(PHONE, code)

    def test_no_request(self, otp):
        with pytest.raises(InvalidOtp):
            otp.verify_otp(PHONE, "123456")

    def test_wrong_code_counts_attempt(self, otp, otp_repo):
        code = otp.send_otp(PHONE).otp
        with pytest.raises(InvalidOtp):
            otp.verify_otp(PHONE, wrong(code))
        assert otp_repo.get(PHONE).attempts == 1
        assert otp.verify_otp(PHONE, code).success

    def test_expired(self, otp, clock):
        code = otp.send_otp(PHONE).otp
        clock.now += 601
        with pytest.raises(OtpExpired):
            otp.verify_otp(PHONE, code)
        with pytest.raises(InvalidOtp):
            otp.verify_otp(PHONE, code)

    def test_too_many_attempts(self, otp, cfg):
        code = otp.send_otp(PHONE).otp
        for _ in range(cfg.otp_max_attempts):
            with pytest.raises(InvalidOtp):
                otp.verify_otp(PHONE, wrong(code))
        with pytest.raises(TooManyOtpAttempts):
            otp.verify_otp(PHONE, code)


class TestPurge:
    def test_purge_expired(self, otp, otp_repo, clock):
        otp.send_otp(PHONE)
        otp.send_otp("9000000001")
        clock.now += 601
        otp.send_otp("9000000002")
        assert otp.purge_expired() == 2
        assert otp_repo.get("9000000002") is not None

    def test_purge_takes_used_codes(self, otp, otp_repo):
        code = otp.send_otp(PHONE).otp
        otp.verify_otp(PHONE, code)
        otp.send_otp("9000000001")
        assert otp.purge_expired() == 1
        assert otp_repo.get(PHONE) is None
        assert otp_repo.get("9000000001") is not None

"""Tests for token → principal mapping."""

import pytest
from fastapi import HTTPException

from app.core.auth import _decode_id_token, _token_to_principal, mock_token


class TestPrincipal:
    def test_role_claim(self):
        p = _token_to_principal({"uid": "u1", "role": "delivery", "phone_number": "+919876543210"})
        assert p.role == "delivery"
        assert p.phone == "+919876543210"

    def test_legacy_admin_claim(self):
        assert _token_to_principal({"uid": "u1", "admin": True}).role == "admin"

    def test_default_customer(self):
        assert _token_to_principal({"uid": "u1", "role": "superuser"}).role == "customer"

    def test_missing_uid(self):
        with pytest.raises(HTTPException) as exc:
            _token_to_principal({"role": "admin"})
        assert exc.value.status_code == 401


class TestMockTokens:
    def test_accepted_in_debug(self, cfg):
        decoded = _decode_id_token(mock_token("admin", "a_1"), cfg)
        assert decoded == {"uid": "a_1", "role": "admin"}

    def test_rejected_outside_debug(self, cfg):
        live = cfg.model_copy(update={"debug": False})
        with pytest.raises(HTTPException) as exc:
            _decode_id_token(mock_token("admin", "a1"), live)
        assert exc.value.status_code == 401

    def test_unknown_role(self, cfg):
        with pytest.raises(HTTPException):
            _decode_id_token("mock_jwt_token_wizard_u1", cfg)

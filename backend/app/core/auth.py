# app/core/auth.py
"""
Identity layer: Bearer token → Principal(uid, role).

- Firebase ID tokens are verified with firebase-admin; the role comes from the
  `role` custom claim (legacy `admin: true` claims map to admin).
- With `debug` on, development tokens `mock_jwt_token_<role>_<uid>` are accepted.

The engines trust the Principal they receive; all authentication happens here.
"""
import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from firebase_admin import auth as fb_auth

from app.config import Settings, get_firebase_app
from app.schemas.principal import Principal
from app.schemas.user import User

logger = logging.getLogger("grocer.auth")

MOCK_PREFIX = "mock_jwt_token_"
_ROLES = ("customer", "admin", "delivery")


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Reads the token from an `Authorization: Bearer <token>` header.
    Returns None when the header is missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def mock_token(role: str, uid: str) -> str:
    return f"{MOCK_PREFIX}{role}_{uid}"


def _decode_mock_token(token: str) -> dict:
    """
    Format: mock_jwt_token_<role>_<uid>
    """
    role, _, uid = token[len(MOCK_PREFIX):].partition("_")
    if role not in _ROLES or not uid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid mock token format",
        )
    return {"uid": uid, "role": role}


def _decode_id_token(id_token: str, cfg: Settings) -> dict:
    """
    Verifies a Firebase ID token; invalid, revoked or expired tokens answer 401.
    """
    if id_token.startswith(MOCK_PREFIX):
        if not cfg.debug:
            raise HTTPException(status_code=401, detail="Development tokens are disabled")
        return _decode_mock_token(id_token)

    try:
        return fb_auth.verify_id_token(id_token, app=get_firebase_app(cfg), check_revoked=True)
    except fb_auth.ExpiredIdTokenError:
        raise HTTPException(status_code=401, detail="Token expired")
    except (fb_auth.RevokedIdTokenError, fb_auth.UserDisabledError):
        raise HTTPException(status_code=401, detail="Session revoked")
    except (ValueError, fb_auth.InvalidIdTokenError, fb_auth.CertificateFetchError) as exc:
        logger.info("Rejected ID token: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid authentication token")


def _token_to_principal(decoded: dict) -> Principal:
    """
    - custom claim role=<customer|admin|delivery> → that role
    - custom claim admin=True → role='admin'
    - others → role='customer'
    """
    uid = decoded.get("uid") or decoded.get("user_id")
    if not uid:
        raise HTTPException(status_code=401, detail="Token missing uid.")

    role = decoded.get("role")
    if role not in _ROLES:
        role = "admin" if decoded.get("admin") is True else "customer"

    return Principal(
        uid=uid,
        role=role,
        phone=decoded.get("phone_number"),
        display_name=decoded.get("name"),
    )


# --------- FastAPI Dependencies --------- #

async def get_principal(request: Request) -> Principal:
    """Token required: verifies it and returns the Principal."""
    token = _extract_bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Missing Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    decoded = _decode_id_token(token, request.app.state.settings)
    return _token_to_principal(decoded)


def require_roles(*roles: str) -> Callable:
    """Dependency factory: only the given roles pass, everyone else gets 403."""

    async def _dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return principal

    return _dependency


get_current_customer = require_roles("customer")
get_current_admin = require_roles("admin")
get_current_delivery = require_roles("delivery")


def issue_session_token(user: User, cfg: Settings) -> str:
    """Session token handed out after a successful OTP login."""
    if cfg.debug:
        return mock_token(user.role, user.id)
    token = fb_auth.create_custom_token(user.id, {"role": user.role}, app=get_firebase_app(cfg))
    return token.decode("utf-8") if isinstance(token, bytes) else token

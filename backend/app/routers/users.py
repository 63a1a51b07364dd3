"""
# `app/routers/users.py` — Own profile

### `GET /users/me`
Profile of the logged-in user (any role).

### `PATCH /users/me`
Body: `UserProfileUpdate` (`name`, `email`, `address`; all optional).
Phone number and role cannot be changed here: the phone is the login identity
and roles are granted with `set_role_claim`.
"""
from fastapi import APIRouter, Depends

from app.core.auth import get_principal
from app.schemas.principal import Principal
from app.schemas.user import User, UserProfileUpdate
from app.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=User)
def get_my_profile(
    principal: Principal = Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.profiles.profile(principal.uid)


@router.patch("/me", response_model=User)
def update_my_profile(
    payload: UserProfileUpdate,
    principal: Principal = Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.profiles.update_profile(principal.uid, payload)

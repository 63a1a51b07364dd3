# app/services/user_service.py
"""Profile reads and self-service updates (name, e-mail, default address)."""
import logging

from app.core.errors import UserNotFound
from app.repositories.base import UserRepository
from app.schemas.user import User, UserProfileUpdate

logger = logging.getLogger("grocer.users")


class UserService:
    def __init__(self, users: UserRepository):
        self._users = users

    def profile(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    def update_profile(self, user_id: str, payload: UserProfileUpdate) -> User:
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            return self.profile(user_id)
        user = self._users.update(user_id, changes)
        if user is None:
            raise UserNotFound(user_id)
        logger.info("Profile of %s updated: %s", user_id, sorted(changes))
        return user

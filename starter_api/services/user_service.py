"""
User service: profile reads and self-service updates.

Email is the login identifier and is not changeable through the profile
endpoints; ``deactivate`` closes the account and signs it out everywhere.
"""
import logging
import uuid

from starter_api.errors import ConflictError, NotFoundError
from starter_api.models import User
from starter_api.repositories import SessionRepository, UserRepository
from starter_api.schemas import Page, PageRequest, UserResponse, UserUpdate, to_page
from starter_api.validators import validate_optional_text, validate_username

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, users: UserRepository, sessions: SessionRepository) -> None:
        self.users = users
        self.sessions = sessions

    async def get(self, user_id: uuid.UUID) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user not found")
        return user

    async def list(self, page: PageRequest) -> Page:
        rows, total = await self.users.list(
            page.offset, page.page_size, page.sort_by, page.sort_order, active_only=True
        )
        return to_page(UserResponse, rows, total, page)

    async def update_profile(self, user: User, data: UserUpdate) -> User:
        """Apply only the fields present in the request payload."""
        changes = data.model_dump(exclude_unset=True)

        if "username" in changes:
            username = validate_username(changes["username"])
            if username != user.username:
                existing = await self.users.get_by_username(username)
                if existing is not None and existing.id != user.id:
                    raise ConflictError("username is already taken").with_field("field", "username")
            user.username = username

        if "full_name" in changes:
            user.full_name = validate_optional_text(changes["full_name"], "full_name", 150)

        return await self.users.update(user)

    async def deactivate(self, user: User) -> None:
        user.is_active = False
        await self.users.update(user)
        removed = await self.sessions.delete_by_user_id(user.id)
        logger.info(
            "User deactivated", extra={"user_id": str(user.id), "sessions": removed}
        )

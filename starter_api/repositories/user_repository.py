from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import delete, func, select

from starter_api.database import utcnow
from starter_api.models import Session, User
from starter_api.repositories.base import SQLRepository


class UserRepository(SQLRepository[User]):
    model = User
    sortable_columns = frozenset({"created_at", "username", "email", "last_login_at"})

    async def get_by_email(self, email: str) -> Optional[User]:
        # Emails are stored lowercased; compare the same way.
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def list(
        self,
        offset: int = 0,
        limit: int = 20,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        active_only: bool = False,
    ) -> tuple[list[User], int]:
        conditions = [User.is_active.is_(True)] if active_only else []
        return await self.paginate(
            select(User), conditions, offset, limit, sort_by, sort_order
        )

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(User))
        return result.scalar_one()


class SessionRepository(SQLRepository[Session]):
    model = Session

    async def get_by_refresh_token(self, refresh_token: str) -> Optional[Session]:
        stmt = select(Session).where(Session.refresh_token == refresh_token)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_by_user_id(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(delete(Session).where(Session.user_id == user_id))
        return result.rowcount or 0

    async def delete_expired(self) -> int:
        """Remove every session whose ``expires_at`` has passed."""
        result = await self.session.execute(
            delete(Session)
            .where(Session.expires_at < utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def purge(self, session: Session) -> None:
        """Delete *session* and commit at once, so the removal survives a failed request."""
        await self.session.delete(session)
        await self.session.commit()

"""
User repository: the lookups and mutations the auth core needs on users.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.models.user import User

logger = logging.getLogger(__name__)


class UserRepository:
    """Data access for user records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> Optional[User]:
        """Exact-match lookup by email."""
        result = await self.session.execute(
            select(User).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id) -> Optional[User]:
        """
        Lookup by id.

        Args:
            user_id: UUID or its string form

        Returns:
            User or None if not found or the id is malformed
        """
        if not isinstance(user_id, uuid.UUID):
            try:
                user_id = uuid.UUID(str(user_id))
            except ValueError:
                return None

        result = await self.session.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    def add(self, user: User) -> User:
        """Stage a new user in the current transaction."""
        self.session.add(user)
        return user

    async def clear_fingerprint(self, user_id: uuid.UUID) -> None:
        """Forget the user's current device fingerprint (no commit)."""
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(device_fingerprint=None)
        )

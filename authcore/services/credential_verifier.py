"""
Credential verification.

Unknown emails and wrong passwords produce the same error and cost the
same single bcrypt comparison.
"""
import logging

from fastapi.concurrency import run_in_threadpool

from authcore.core.exceptions import InvalidCredentials
from authcore.core.security import verify_password, get_password_hash
from authcore.models.user import User
from authcore.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# Compared against when the email is unknown so both paths hash once
_DUMMY_HASH = get_password_hash("authcore-dummy-password")


class CredentialVerifier:
    """Checks an email and plaintext password against the stored hash."""

    def __init__(self, users: UserRepository):
        self.users = users

    async def verify(self, email: str, password: str) -> User:
        """
        Return the user whose credentials match.

        Raises:
            InvalidCredentials: unknown email or wrong password
        """
        user = await self.users.get_by_email(email)
        hashed = user.password_hash if user else _DUMMY_HASH

        matches = await run_in_threadpool(verify_password, password, hashed)
        if user is None or not matches:
            logger.info("Login rejected: invalid credentials")
            raise InvalidCredentials()

        return user

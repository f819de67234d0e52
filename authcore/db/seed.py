"""
Seed data for local development and tests.

Usage:
    python -m authcore.db.seed
"""
import asyncio
import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.config import settings
from authcore.core.security import get_password_hash
from authcore.db.session import Database
from authcore.models.profile import Customer, Employee
from authcore.models.user import User, UserRole
from authcore.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

SEED_USERS = [
    {"email": "test@example.com", "password": "Test123!@#", "name": "Test Customer", "role": UserRole.CUSTOMER},
    {"email": "employee@example.com", "password": "Employee123!@#", "name": "Test Employee", "role": UserRole.EMPLOYEE},
    {"email": "admin@example.com", "password": "Admin123!@#", "name": "Test Admin", "role": UserRole.ADMIN},
]


async def seed_users(session: AsyncSession, users=SEED_USERS) -> List[User]:
    """Create the seed users that do not exist yet and return all of them."""
    repo = UserRepository(session)
    seeded = []
    for data in users:
        user = await repo.get_by_email(data["email"])
        if user is None:
            role = data["role"]
            user = repo.add(User(
                email=data["email"],
                password_hash=get_password_hash(data["password"]),
                name=data["name"],
                role=role,
                customer=Customer() if role == UserRole.CUSTOMER else None,
                employee=Employee() if role == UserRole.EMPLOYEE else None,
            ))
            logger.info(f"Seeded {role.value} user {data['email']}")
        seeded.append(user)
    await session.commit()
    return seeded


async def main() -> None:
    database = Database.from_settings(settings.database)
    try:
        await database.create_all()
        async with database.session_maker() as session:
            await seed_users(session)
    finally:
        await database.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())

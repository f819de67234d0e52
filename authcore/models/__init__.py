"""Database models for the auth core."""

from authcore.models.user import User, UserRole
from authcore.models.profile import Customer, Employee
from authcore.models.refresh_token import RefreshToken

__all__ = [
    "User",
    "UserRole",
    "Customer",
    "Employee",
    "RefreshToken",
]

"""Pydantic schemas for the auth API."""

from authcore.schemas.user import (
    BearerTokenResponse,
    ErrorResponse,
    LogoutResponse,
    SessionResponse,
    SessionUser,
    UserCreate,
    UserLogin,
)

__all__ = [
    "BearerTokenResponse",
    "ErrorResponse",
    "LogoutResponse",
    "SessionResponse",
    "SessionUser",
    "UserCreate",
    "UserLogin",
]

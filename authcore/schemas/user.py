"""
User and auth schemas for request/response validation.
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional

from authcore.models.user import UserRole


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserCreate(BaseModel):
    """Schema for user registration."""
    email: EmailStr
    password: str = Field(..., max_length=72, description="User password (strength checked on signup)")
    name: Optional[str] = Field(None, max_length=255)
    role: UserRole = UserRole.CUSTOMER


class SessionUser(BaseModel):
    """Public view of the authenticated user."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    role: UserRole
    customer_id: Optional[str] = Field(None, alias="customerId")
    employee_id: Optional[str] = Field(None, alias="employeeId")

    @classmethod
    def from_user(cls, user) -> "SessionUser":
        return cls(
            id=str(user.id),
            email=user.email,
            role=user.role,
            customer_id=str(user.customer.id) if user.customer else None,
            employee_id=str(user.employee.id) if user.employee else None,
        )


class SessionResponse(BaseModel):
    """Body returned by login and refresh; tokens travel in cookies."""
    user: SessionUser


class LogoutResponse(BaseModel):
    """Schema for logout response."""
    success: bool = True


class BearerTokenResponse(BaseModel):
    """Schema for the bearer-token refresh response."""
    token: str


class ErrorResponse(BaseModel):
    """Error body shared by all auth failures."""
    error: str

"""
User model for authentication.
"""
from sqlalchemy import Column, String, DateTime, Enum, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid

from authcore.db.base import Base


class UserRole(str, enum.Enum):
    """Roles known to the auth core."""

    CUSTOMER = "CUSTOMER"
    EMPLOYEE = "EMPLOYEE"
    ADMIN = "ADMIN"


class User(Base):
    """Identity record: email, password hash, role and current device fingerprint."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255))

    # Authorization
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.CUSTOMER)

    # Fingerprint of the most recent login; cleared on logout
    device_fingerprint = Column(String(128), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships (profiles are eager so token claims never lazy-load)
    customer = relationship(
        "Customer", back_populates="user", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )
    employee = relationship(
        "Employee", back_populates="user", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

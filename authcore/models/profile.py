"""
Customer and employee profiles.

Only the ids matter to the auth core: they are embedded in access tokens
as ``customerId`` / ``employeeId``.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from authcore.db.base import Base


class Customer(Base):
    """Customer profile attached to a CUSTOMER user."""

    __tablename__ = "customers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="customer")

    def __repr__(self):
        return f"<Customer(id={self.id}, user_id={self.user_id})>"


class Employee(Base):
    """Employee profile attached to an EMPLOYEE user."""

    __tablename__ = "employees"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="employee")

    def __repr__(self):
        return f"<Employee(id={self.id}, user_id={self.user_id})>"

"""
Refresh token model.

A record is ACTIVE while ``is_revoked`` is false and ``expires_at`` lies in
the future. Revocation is terminal; expiry is implicit in the timestamp.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from authcore.db.base import Base


class RefreshToken(Base):
    """One issued refresh credential, bound to a device fingerprint."""

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("idx_refresh_tokens_active", "is_revoked", "expires_at"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    token = Column(String(1024), unique=True, nullable=False, index=True)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    device_fingerprint = Column(String(128), nullable=False)

    # Lifecycle
    expires_at = Column(DateTime, nullable=False)
    is_revoked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="refresh_tokens")

    @property
    def is_active(self) -> bool:
        """Not revoked and not past expiry."""
        return not self.is_revoked and self.expires_at > datetime.utcnow()

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, user_id={self.user_id}, revoked={self.is_revoked})>"

"""
Refresh token store.

Persists refresh-token records and implements the state transitions:
issue, rotate, revoke-all and cleanup. Methods never commit; the caller
owns the transaction so a revoke and its paired insert land together.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenRepository:
    """
    Repository for refresh token records.

    ``rotate`` guards the revoke with ``is_revoked = false`` so that of two
    concurrent refreshes of the same token only one updates a row.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        token: str,
        user_id: uuid.UUID,
        device_fingerprint: str,
        expires_at: datetime,
    ) -> RefreshToken:
        """
        Stage a new ACTIVE record.

        Args:
            token: Signed refresh token string
            user_id: Owning user
            device_fingerprint: Fingerprint the token is bound to
            expires_at: Expiry timestamp (UTC, naive)

        Returns:
            The pending RefreshToken
        """
        record = RefreshToken(
            token=token,
            user_id=user_id,
            device_fingerprint=device_fingerprint,
            expires_at=expires_at,
            is_revoked=False,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def find_active(self, token: str) -> Optional[RefreshToken]:
        """Find a non-revoked, unexpired record for a token string."""
        result = await self.session.execute(
            select(RefreshToken).where(
                RefreshToken.token == token,
                RefreshToken.is_revoked == False,  # noqa: E712
                RefreshToken.expires_at > datetime.utcnow(),
            )
        )
        return result.scalar_one_or_none()

    async def revoke(self, record_id: uuid.UUID) -> bool:
        """
        Revoke one record if it is still ACTIVE.

        Returns:
            True if this call performed the revocation, False if the record
            was already revoked (lost a race or replayed)
        """
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.id == record_id,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    async def rotate(
        self,
        current: RefreshToken,
        new_token: str,
        expires_at: datetime,
    ) -> Optional[RefreshToken]:
        """
        Revoke ``current`` and stage its replacement with the same fingerprint.

        Returns:
            The new record, or None if ``current`` had already been revoked
        """
        if not await self.revoke(current.id):
            return None

        return await self.create(
            token=new_token,
            user_id=current.user_id,
            device_fingerprint=current.device_fingerprint,
            expires_at=expires_at,
        )

    async def revoke_all_for_user(self, user_id: uuid.UUID) -> int:
        """
        Revoke every ACTIVE record of a user.

        Returns:
            Number of records revoked
        """
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount or 0

    async def revoke_for_fingerprint(self, user_id: uuid.UUID, device_fingerprint: str) -> int:
        """
        Revoke the ACTIVE records of one user on one device.

        Called before a login stages its new record, so a device never
        holds two redeemable refresh tokens.

        Returns:
            Number of records revoked
        """
        result = await self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.device_fingerprint == device_fingerprint,
                RefreshToken.is_revoked == False,  # noqa: E712
            )
            .values(is_revoked=True)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount or 0

    async def delete_terminal(self, now: Optional[datetime] = None) -> int:
        """
        Delete records that are revoked or past expiry.

        Never touches ACTIVE records, so it is safe alongside live traffic.

        Returns:
            Number of deleted records
        """
        now = now or datetime.utcnow()
        result = await self.session.execute(
            delete(RefreshToken)
            .where(
                or_(
                    RefreshToken.is_revoked == True,  # noqa: E712
                    RefreshToken.expires_at <= now,
                )
            )
            .execution_options(synchronize_session="evaluate")
        )
        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} revoked or expired refresh tokens")
        return deleted

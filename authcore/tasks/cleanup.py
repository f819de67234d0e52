"""
Refresh token cleanup.

Removes revoked and expired refresh-token rows for storage hygiene.
Correctness never depends on it: expiry is enforced by timestamp at
lookup time.
"""
import asyncio
import logging

from authcore.core.celery import celery_app
from authcore.core.config import settings
from authcore.db.session import Database
from authcore.repositories.refresh_token_repository import RefreshTokenRepository

logger = logging.getLogger(__name__)


async def purge_terminal_refresh_tokens(database: Database) -> int:
    """Delete terminal refresh tokens in one transaction and return the count."""
    async with database.session_maker() as session:
        try:
            deleted = await RefreshTokenRepository(session).delete_terminal()
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return deleted


async def _run_cleanup() -> int:
    database = Database.from_settings(settings.database)
    try:
        return await purge_terminal_refresh_tokens(database)
    finally:
        await database.dispose()


@celery_app.task(name="authcore.tasks.cleanup.cleanup_refresh_tokens")
def cleanup_refresh_tokens() -> int:
    """Beat entry point; each run uses its own engine and event loop."""
    deleted = asyncio.run(_run_cleanup())
    logger.info(f"Refresh token cleanup finished: {deleted} rows removed")
    return deleted

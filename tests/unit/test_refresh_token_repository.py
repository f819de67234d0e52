"""
Tests for the refresh token store and the cleanup job that sits on it.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import InvalidRequestError

from authcore.models.refresh_token import RefreshToken
from authcore.models.user import User
from authcore.repositories.refresh_token_repository import RefreshTokenRepository
from authcore.tasks.cleanup import purge_terminal_refresh_tokens


async def stage(repo, user, token, expires_in=timedelta(days=7), fingerprint="device-a"):
    return await repo.create(
        token=token,
        user_id=user.id,
        device_fingerprint=fingerprint,
        expires_at=datetime.utcnow() + expires_in,
    )


async def count_tokens(session):
    return (await session.execute(select(func.count()).select_from(RefreshToken))).scalar_one()


async def test_find_active_skips_revoked_and_expired(session, customer):
    repo = RefreshTokenRepository(session)
    active = await stage(repo, customer, "active")
    await stage(repo, customer, "expired", expires_in=timedelta(seconds=-1))
    revoked = await stage(repo, customer, "revoked")
    await repo.revoke(revoked.id)
    await session.commit()

    assert (await repo.find_active("active")).id == active.id
    assert await repo.find_active("expired") is None
    assert await repo.find_active("revoked") is None
    assert await repo.find_active("unknown") is None


async def test_revoke_only_once(session, customer):
    repo = RefreshTokenRepository(session)
    record = await stage(repo, customer, "token")

    assert await repo.revoke(record.id) is True
    assert await repo.revoke(record.id) is False
    assert record.is_revoked is True


async def test_rotate_keeps_fingerprint(session, customer):
    repo = RefreshTokenRepository(session)
    current = await stage(repo, customer, "old", fingerprint="device-z")

    replacement = await repo.rotate(current, "new", datetime.utcnow() + timedelta(days=7))
    await session.commit()

    assert replacement.device_fingerprint == "device-z"
    assert replacement.user_id == customer.id
    assert current.is_revoked is True
    assert await repo.rotate(current, "newer", datetime.utcnow() + timedelta(days=7)) is None


async def test_revoke_all_for_user(session, customer, admin):
    repo = RefreshTokenRepository(session)
    await stage(repo, customer, "c1")
    await stage(repo, customer, "c2")
    admin_token = await stage(repo, admin, "a1")

    assert await repo.revoke_all_for_user(customer.id) == 2
    assert await repo.revoke_all_for_user(customer.id) == 0
    assert admin_token.is_active


async def test_delete_terminal_keeps_active_rows(session, customer):
    repo = RefreshTokenRepository(session)
    await stage(repo, customer, "active")
    await stage(repo, customer, "expired", expires_in=timedelta(seconds=-1))
    revoked = await stage(repo, customer, "revoked")
    await repo.revoke(revoked.id)
    await session.commit()

    assert await repo.delete_terminal() == 2
    await session.commit()

    assert await count_tokens(session) == 1
    assert await repo.find_active("active") is not None


async def test_purge_job_commits(database, session, customer):
    repo = RefreshTokenRepository(session)
    await stage(repo, customer, "active")
    await stage(repo, customer, "expired", expires_in=timedelta(seconds=-1))
    await session.commit()

    assert await purge_terminal_refresh_tokens(database) == 1
    assert await count_tokens(session) == 1

    assert await purge_terminal_refresh_tokens(database) == 0


async def test_user_token_collection_is_never_loaded_implicitly(session, customer):
    await stage(RefreshTokenRepository(session), customer, "token")

    with pytest.raises(InvalidRequestError):
        customer.refresh_tokens


async def test_deleting_user_does_not_load_tokens(session, admin):
    await stage(RefreshTokenRepository(session), admin, "token")
    await session.commit()

    await session.delete(admin)
    await session.commit()

    assert (await session.execute(select(User).where(User.id == admin.id))).first() is None

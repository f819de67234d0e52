"""
Unit tests for the session orchestrator (AuthService).

Run against a real SQLite database so the refresh-token state transitions
are exercised through SQLAlchemy.
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import delete, select, update

from authcore.core.exceptions import (
    EmailAlreadyRegistered,
    FingerprintMismatch,
    InvalidCredentials,
    InvalidOrExpiredToken,
    RateLimitExceeded,
    RoleNotAllowed,
    UserNotFound,
    WeakPassword,
)
from authcore.models.refresh_token import RefreshToken
from authcore.models.user import User, UserRole
from authcore.repositories.refresh_token_repository import RefreshTokenRepository
from authcore.services.auth_service import AuthService


async def tokens_for(session, user_id):
    result = await session.execute(
        select(RefreshToken)
        .where(RefreshToken.user_id == user_id)
        .order_by(RefreshToken.created_at)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars())


class TestLogin:
    """Tests for login."""

    async def test_login_success(self, auth_service, customer, customer_credentials, token_issuer, session):
        result = await auth_service.login(**customer_credentials)

        assert result.user.id == customer.id
        assert len(result.fingerprint) == 64

        claims = token_issuer.verify(result.access_token)
        assert claims["id"] == str(customer.id)
        assert claims["role"] == "CUSTOMER"
        assert claims["fingerprint"] == result.fingerprint
        assert claims["customerId"] == str(customer.customer.id)

        records = await tokens_for(session, customer.id)
        assert len(records) == 1
        assert records[0].token == result.refresh_token
        assert records[0].device_fingerprint == result.fingerprint
        assert records[0].is_active

        await session.refresh(customer)
        assert customer.device_fingerprint == result.fingerprint

    async def test_login_reuses_supplied_fingerprint(self, auth_service, customer, customer_credentials, token_issuer):
        result = await auth_service.login(**customer_credentials, supplied_fingerprint="device-a")

        assert result.fingerprint == "device-a"
        assert token_issuer.verify(result.refresh_token, is_refresh=True)["fingerprint"] == "device-a"

    async def test_second_login_on_same_device_revokes_earlier_token(
        self, auth_service, customer, customer_credentials, session
    ):
        first = await auth_service.login(**customer_credentials, supplied_fingerprint="device-a")
        second = await auth_service.login(**customer_credentials, supplied_fingerprint="device-a")

        active = [r for r in await tokens_for(session, customer.id) if r.is_active]
        assert [r.token for r in active] == [second.refresh_token]

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(first.refresh_token, supplied_fingerprint="device-a")

    async def test_login_on_other_device_keeps_existing_session(
        self, auth_service, customer, customer_credentials
    ):
        device_a = await auth_service.login(**customer_credentials, supplied_fingerprint="device-a")
        await auth_service.login(**customer_credentials, supplied_fingerprint="device-b")

        refreshed = await auth_service.refresh(device_a.refresh_token, supplied_fingerprint="device-a")

        assert refreshed.fingerprint == "device-a"

    async def test_unknown_email_and_wrong_password_are_indistinguishable(self, auth_service, customer):
        with pytest.raises(InvalidCredentials) as unknown:
            await auth_service.login("nonexistent@x.com", "anything")

        with pytest.raises(InvalidCredentials) as wrong:
            await auth_service.login("test@example.com", "wrongpassword")

        assert unknown.value.message == wrong.value.message == "Invalid email or password"
        assert unknown.value.status_code == wrong.value.status_code == 401

    async def test_unknown_email_still_compares_a_hash(self, auth_service):
        with patch("authcore.services.credential_verifier.verify_password", return_value=False) as verify:
            with pytest.raises(InvalidCredentials):
                await auth_service.login("nonexistent@x.com", "anything")

        verify.assert_called_once()

    async def test_sixth_attempt_rate_limited_even_with_correct_password(
        self, auth_service, customer, customer_credentials
    ):
        for _ in range(5):
            with pytest.raises(InvalidCredentials):
                await auth_service.login(customer_credentials["email"], "wrongpassword")

        with pytest.raises(RateLimitExceeded) as exc_info:
            await auth_service.login(**customer_credentials)

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after > 0

    async def test_rate_limit_checked_before_password(self, auth_service, customer):
        auth_service.rate_limiter.check_limit = AsyncMock(
            return_value=type("Denied", (), {"allowed": False, "retry_after": 30})()
        )

        with patch("authcore.services.credential_verifier.verify_password") as verify:
            with pytest.raises(RateLimitExceeded):
                await auth_service.login("test@example.com", "Test123!@#")

        verify.assert_not_called()


class TestRefresh:
    """Tests for refresh-token rotation."""

    async def test_refresh_rotates_pair(self, auth_service, customer, customer_credentials, token_issuer, session):
        login = await auth_service.login(**customer_credentials)

        refreshed = await auth_service.refresh(login.refresh_token, supplied_fingerprint=login.fingerprint)

        assert refreshed.refresh_token != login.refresh_token
        assert refreshed.fingerprint == login.fingerprint
        assert refreshed.user.id == customer.id
        assert token_issuer.verify(refreshed.access_token)["fingerprint"] == login.fingerprint

        records = {r.token: r for r in await tokens_for(session, customer.id)}
        assert records[login.refresh_token].is_revoked is True
        assert records[refreshed.refresh_token].is_active
        assert records[refreshed.refresh_token].device_fingerprint == login.fingerprint

    async def test_refresh_without_fingerprint_is_allowed(self, auth_service, customer, customer_credentials):
        login = await auth_service.login(**customer_credentials)

        refreshed = await auth_service.refresh(login.refresh_token)

        assert refreshed.fingerprint == login.fingerprint

    async def test_refresh_token_single_use(self, auth_service, customer, customer_credentials):
        login = await auth_service.login(**customer_credentials)
        await auth_service.refresh(login.refresh_token)

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(login.refresh_token)

    async def test_rotated_token_can_be_redeemed(self, auth_service, customer, customer_credentials):
        login = await auth_service.login(**customer_credentials)
        first = await auth_service.refresh(login.refresh_token)

        second = await auth_service.refresh(first.refresh_token)

        assert second.refresh_token not in (login.refresh_token, first.refresh_token)

    async def test_fingerprint_mismatch_revokes_everything(
        self, auth_service, customer, customer_credentials, session
    ):
        device_a = await auth_service.login(**customer_credentials, supplied_fingerprint="device-a")
        device_c = await auth_service.login(**customer_credentials, supplied_fingerprint="device-c")

        with pytest.raises(FingerprintMismatch) as exc_info:
            await auth_service.refresh(device_a.refresh_token, supplied_fingerprint="device-b")

        assert isinstance(exc_info.value, InvalidOrExpiredToken)
        assert exc_info.value.message == "Invalid or expired token"
        assert all(r.is_revoked for r in await tokens_for(session, customer.id))

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(device_a.refresh_token, supplied_fingerprint="device-a")
        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(device_c.refresh_token, supplied_fingerprint="device-c")

    async def test_invalid_signature_rejected(self, auth_service):
        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh("not-a-token")

    async def test_access_token_not_accepted_as_refresh(self, auth_service, customer, customer_credentials):
        login = await auth_service.login(**customer_credentials)

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(login.access_token)

    async def test_expired_record_rejected(self, auth_service, customer, customer_credentials, session):
        login = await auth_service.login(**customer_credentials)
        await session.execute(
            update(RefreshToken)
            .where(RefreshToken.token == login.refresh_token)
            .values(expires_at=datetime.utcnow() - timedelta(seconds=1))
        )
        await session.commit()

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(login.refresh_token)

    async def test_unknown_but_well_signed_token_rejected(self, auth_service, customer, token_issuer):
        forged = token_issuer.issue_refresh_token(customer, "device-a")

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(forged)

    async def test_vanished_user(self, auth_service, customer, customer_credentials, session):
        login = await auth_service.login(**customer_credentials)
        # Bulk delete leaves the refresh row behind (SQLite does not enforce the FK cascade)
        await session.execute(delete(User).where(User.id == customer.id))
        await session.commit()

        with pytest.raises(UserNotFound):
            await auth_service.refresh(login.refresh_token)

    async def test_rate_limited_refresh_message(self, auth_service, customer, customer_credentials):
        login = await auth_service.login(**customer_credentials)
        auth_service.rate_limiter.check_limit = AsyncMock(
            return_value=type("Denied", (), {"allowed": False, "retry_after": 12})()
        )

        with pytest.raises(RateLimitExceeded) as exc_info:
            await auth_service.refresh(login.refresh_token)

        assert exc_info.value.message == "Too many refresh attempts"
        assert exc_info.value.retry_after == 12

    async def test_concurrent_rotation_only_one_wins(
        self, database, auth_service, customer, customer_credentials, token_issuer
    ):
        """A record read before another request rotated it cannot rotate again."""
        login = await auth_service.login(**customer_credentials)

        async with database.session_maker() as first, database.session_maker() as second:
            first_repo = RefreshTokenRepository(first)
            second_repo = RefreshTokenRepository(second)
            first_record = await first_repo.find_active(login.refresh_token)
            second_record = await second_repo.find_active(login.refresh_token)
            await second.commit()

            assert await first_repo.rotate(
                first_record, token_issuer.issue_refresh_token(customer, "x"), token_issuer.refresh_expires_at()
            ) is not None
            await first.commit()

            assert await second_repo.rotate(
                second_record, token_issuer.issue_refresh_token(customer, "x"), token_issuer.refresh_expires_at()
            ) is None
            await second.rollback()


class TestLogout:
    """Tests for logout."""

    async def test_logout_revokes_and_clears_fingerprint(
        self, auth_service, customer, customer_credentials, session
    ):
        login = await auth_service.login(**customer_credentials)

        revoked = await auth_service.logout(customer.id)

        assert revoked == 1
        assert all(r.is_revoked for r in await tokens_for(session, customer.id))
        await session.refresh(customer)
        assert customer.device_fingerprint is None

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(login.refresh_token)

    async def test_logout_is_idempotent(self, auth_service, customer, customer_credentials):
        await auth_service.login(**customer_credentials)

        assert await auth_service.logout(str(customer.id)) == 1
        assert await auth_service.logout(str(customer.id)) == 0

    async def test_logout_with_malformed_id_is_noop(self, auth_service):
        assert await auth_service.logout("not-a-uuid") == 0


class TestBearerRefresh:
    """Tests for the deprecated bearer-token refresh."""

    async def test_reissues_access_token(self, auth_service, customer, customer_credentials, token_issuer):
        login = await auth_service.login(**customer_credentials)

        token, user = await auth_service.reissue_bearer_token(login.access_token)

        assert user.id == customer.id
        claims = token_issuer.verify(token)
        assert claims["id"] == str(customer.id)
        assert claims["fingerprint"] == login.fingerprint

    async def test_missing_token(self, auth_service):
        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.reissue_bearer_token(None)

    async def test_deleted_user(self, auth_service, admin, token_issuer, session):
        token = token_issuer.issue_access_token(admin, "fp")
        await session.delete(admin)
        await session.commit()

        with pytest.raises(UserNotFound):
            await auth_service.reissue_bearer_token(token)


class TestRegister:
    """Tests for signup."""

    async def test_register_customer_creates_profile(self, auth_service, session):
        user = await auth_service.register("new@example.com", "Str0ng!Pass", name="New Customer")

        assert user.role == UserRole.CUSTOMER
        assert user.customer is not None
        assert user.employee is None

        stored = (await session.execute(select(User).where(User.email == "new@example.com"))).scalar_one()
        assert stored.password_hash != "Str0ng!Pass"

    async def test_register_employee_creates_profile(self, auth_service, token_issuer):
        user = await auth_service.register("staff@example.com", "Str0ng!Pass", role=UserRole.EMPLOYEE)

        claims = token_issuer.verify(token_issuer.issue_access_token(user, "fp"))
        assert claims["employeeId"] == str(user.employee.id)
        assert claims["aud"] == "employee"

    async def test_registered_user_can_login(self, auth_service):
        await auth_service.register("new@example.com", "Str0ng!Pass")

        result = await auth_service.login("new@example.com", "Str0ng!Pass")

        assert result.user.email == "new@example.com"

    async def test_weak_password(self, auth_service):
        with pytest.raises(WeakPassword) as exc_info:
            await auth_service.register("new@example.com", "weak")

        assert exc_info.value.status_code == 400

    async def test_admin_cannot_self_register(self, auth_service, session):
        with pytest.raises(RoleNotAllowed) as exc_info:
            await auth_service.register("root@example.com", "Str0ng!Pass", role=UserRole.ADMIN)

        assert exc_info.value.status_code == 400
        assert (await session.execute(select(User).where(User.email == "root@example.com"))).first() is None

    async def test_duplicate_email(self, auth_service, customer):
        with pytest.raises(EmailAlreadyRegistered):
            await auth_service.register("test@example.com", "Str0ng!Pass")

    async def test_signup_rate_limited(self, auth_service):
        for i in range(3):
            await auth_service.register(f"user{i}@example.com", "Str0ng!Pass", rate_limit_key="10.0.0.1")

        with pytest.raises(RateLimitExceeded):
            await auth_service.register("user9@example.com", "Str0ng!Pass", rate_limit_key="10.0.0.1")


async def test_service_accepts_injected_handles(session, token_issuer, rate_limiter):
    service = AuthService(session, token_issuer, rate_limiter)

    assert service.db is session
    assert service.tokens is token_issuer
    assert service.rate_limiter is rate_limiter

"""
Authentication service: login, refresh-token rotation, logout and signup.

Composes the rate limiter, credential verifier, fingerprint resolution,
token issuer and refresh token store. Every multi-row change (new refresh
record plus user fingerprint, revoke plus insert) is committed in a single
transaction on the injected session.
"""
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import uuid

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.exceptions import (
    EmailAlreadyRegistered,
    FingerprintMismatch,
    InvalidOrExpiredToken,
    RateLimitExceeded,
    RoleNotAllowed,
    UserNotFound,
    WeakPassword,
)
from authcore.core.security import (
    TokenIssuer,
    get_password_hash,
    validate_password_strength,
)
from authcore.models.profile import Customer, Employee
from authcore.models.user import User, UserRole
from authcore.observability.tracing import track_operation
from authcore.repositories.refresh_token_repository import RefreshTokenRepository
from authcore.repositories.user_repository import UserRepository
from authcore.services.credential_verifier import CredentialVerifier
from authcore.services.fingerprint import resolve_fingerprint, short_fingerprint
from authcore.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# ADMIN accounts are provisioned out of band (seed or migration), never by signup
SELF_SIGNUP_ROLES = (UserRole.CUSTOMER, UserRole.EMPLOYEE)


@dataclass
class SessionTokens:
    """Token pair handed back by login and refresh."""

    access_token: str
    refresh_token: str
    user: User
    fingerprint: str


# Login and refresh hand back the same shape
LoginResult = SessionTokens
RefreshResult = SessionTokens


class AuthService:
    """Session orchestrator for authentication operations."""

    def __init__(
        self,
        db: AsyncSession,
        token_issuer: TokenIssuer,
        rate_limiter: RateLimiter,
    ):
        self.db = db
        self.tokens = token_issuer
        self.rate_limiter = rate_limiter
        self.users = UserRepository(db)
        self.refresh_tokens = RefreshTokenRepository(db)
        self.credentials = CredentialVerifier(self.users)

    async def login(
        self,
        email: str,
        password: str,
        supplied_fingerprint: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate a user and open a session.

        Args:
            email: User email (exact match)
            password: Plain text password
            supplied_fingerprint: Fingerprint the client already holds, if any

        Returns:
            LoginResult with the new access/refresh pair

        Raises:
            RateLimitExceeded: Too many attempts for this email (checked first)
            InvalidCredentials: Unknown email or wrong password
        """
        with track_operation("auth.login") as span:
            decision = await self.rate_limiter.check_limit(email, "login")
            if not decision.allowed:
                raise RateLimitExceeded(retry_after=decision.retry_after)

            user = await self.credentials.verify(email, password)
            fingerprint = resolve_fingerprint(supplied_fingerprint)

            access_token = self.tokens.issue_access_token(user, fingerprint)
            refresh_token = self.tokens.issue_refresh_token(user, fingerprint)

            try:
                replaced = await self.refresh_tokens.revoke_for_fingerprint(user.id, fingerprint)
                if replaced:
                    logger.info(
                        f"Revoked {replaced} earlier refresh tokens of user {user.id} "
                        f"on device {short_fingerprint(fingerprint)}"
                    )
                await self.refresh_tokens.create(
                    token=refresh_token,
                    user_id=user.id,
                    device_fingerprint=fingerprint,
                    expires_at=self.tokens.refresh_expires_at(),
                )
                user.device_fingerprint = fingerprint
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

            span.update(user_id=user.id, fingerprint=short_fingerprint(fingerprint))
            return SessionTokens(
                access_token=access_token,
                refresh_token=refresh_token,
                user=user,
                fingerprint=fingerprint,
            )

    async def refresh(
        self,
        refresh_token: str,
        supplied_fingerprint: Optional[str] = None,
    ) -> RefreshResult:
        """
        Redeem a refresh token for a new pair (rotation).

        A token can be redeemed once. Presenting it with a fingerprint other
        than the one it was bound to revokes every refresh token of the user.

        Raises:
            InvalidOrExpiredToken: Bad signature, expired, revoked, unknown,
                or already rotated
            FingerprintMismatch: Fingerprint differs (after mass revocation)
            RateLimitExceeded: Refresh policy tripped for this user
            UserNotFound: Token owner no longer exists
        """
        with track_operation("auth.refresh") as span:
            claims = self.tokens.verify(refresh_token, is_refresh=True)
            if claims is None:
                raise InvalidOrExpiredToken()

            decision = await self.rate_limiter.check_limit(claims["id"], "refresh")
            if not decision.allowed:
                raise RateLimitExceeded(
                    retry_after=decision.retry_after,
                    message="Too many refresh attempts",
                )

            try:
                record = await self.refresh_tokens.find_active(refresh_token)
                if record is None or str(record.user_id) != claims["id"]:
                    raise InvalidOrExpiredToken()

                span.update(user_id=record.user_id)

                if supplied_fingerprint and supplied_fingerprint != record.device_fingerprint:
                    revoked = await self.refresh_tokens.revoke_all_for_user(record.user_id)
                    await self.db.commit()
                    logger.warning(
                        f"Fingerprint mismatch for user {record.user_id}: "
                        f"expected {short_fingerprint(record.device_fingerprint)}, "
                        f"got {short_fingerprint(supplied_fingerprint)}; "
                        f"revoked {revoked} refresh tokens"
                    )
                    raise FingerprintMismatch(user_id=record.user_id)

                user = await self.users.get_by_id(record.user_id)
                if user is None:
                    raise UserNotFound()

                fingerprint = record.device_fingerprint
                new_refresh_token = self.tokens.issue_refresh_token(user, fingerprint)
                rotated = await self.refresh_tokens.rotate(
                    record,
                    new_token=new_refresh_token,
                    expires_at=self.tokens.refresh_expires_at(),
                )
                if rotated is None:
                    # Another request redeemed this token first
                    raise InvalidOrExpiredToken()

                access_token = self.tokens.issue_access_token(user, fingerprint)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

            return SessionTokens(
                access_token=access_token,
                refresh_token=new_refresh_token,
                user=user,
                fingerprint=fingerprint,
            )

    async def logout(self, user_id) -> int:
        """
        Revoke every refresh token of a user and clear their fingerprint.

        Idempotent: repeating it, or passing an unknown id, is a no-op.

        Returns:
            Number of refresh tokens revoked by this call
        """
        with track_operation("auth.logout", user_id=user_id):
            try:
                uid = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(str(user_id))
            except ValueError:
                return 0

            try:
                revoked = await self.refresh_tokens.revoke_all_for_user(uid)
                await self.users.clear_fingerprint(uid)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

            return revoked

    async def authenticate_access_token(self, token: Optional[str]) -> Tuple[User, dict]:
        """
        Resolve the user behind an access token.

        Raises:
            InvalidOrExpiredToken: Token missing or invalid
            UserNotFound: Token valid but user deleted
        """
        claims = self.tokens.verify(token)
        if claims is None:
            raise InvalidOrExpiredToken()

        user = await self.users.get_by_id(claims["id"])
        if user is None:
            raise UserNotFound()

        return user, claims

    async def reissue_bearer_token(self, token: Optional[str]) -> Tuple[str, User]:
        """
        Deprecated bearer-header refresh: exchange a valid access token for a
        fresh one. Kept as an alias of the rotation design for older clients.

        Raises:
            InvalidOrExpiredToken: Missing or invalid token
            UserNotFound: Subject no longer exists
        """
        with track_operation("auth.bearer_refresh") as span:
            user, claims = await self.authenticate_access_token(token)
            fingerprint = claims.get("fingerprint") or user.device_fingerprint
            fingerprint = resolve_fingerprint(fingerprint)
            span.update(user_id=user.id)
            return self.tokens.issue_access_token(user, fingerprint), user

    async def register(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
        role: UserRole = UserRole.CUSTOMER,
        device_fingerprint: Optional[str] = None,
        rate_limit_key: Optional[str] = None,
    ) -> User:
        """
        Create a user with the profile matching their role.

        Args:
            email: Unique email
            password: Plain text password (strength validated)
            name: Display name
            role: CUSTOMER or EMPLOYEE (ADMIN is refused)
            device_fingerprint: Fingerprint to bind, if the client has one
            rate_limit_key: Identity for the signup policy (defaults to email)

        Raises:
            RateLimitExceeded, RoleNotAllowed, WeakPassword, EmailAlreadyRegistered
        """
        with track_operation("auth.register") as span:
            decision = await self.rate_limiter.check_limit(rate_limit_key or email, "signup")
            if not decision.allowed:
                raise RateLimitExceeded(
                    retry_after=decision.retry_after,
                    message="Too many signup attempts",
                )

            if role not in SELF_SIGNUP_ROLES:
                raise RoleNotAllowed()

            is_valid, error_msg = validate_password_strength(password)
            if not is_valid:
                raise WeakPassword(error_msg)

            if await self.users.get_by_email(email):
                raise EmailAlreadyRegistered()

            password_hash = await run_in_threadpool(get_password_hash, password)
            user = User(
                email=email,
                password_hash=password_hash,
                name=name,
                role=role,
                device_fingerprint=device_fingerprint,
                customer=Customer() if role == UserRole.CUSTOMER else None,
                employee=Employee() if role == UserRole.EMPLOYEE else None,
            )
            self.users.add(user)

            try:
                await self.db.commit()
            except IntegrityError:
                # Lost a race with a concurrent signup for the same email
                await self.db.rollback()
                raise EmailAlreadyRegistered()
            except Exception:
                await self.db.rollback()
                raise

            span.update(user_id=user.id, role=role.value)
            return user

"""
FastAPI dependencies for authentication.

Shared handles (database, Redis, token issuer) are built by the
application lifespan and read from ``app.state``.
"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from redis.asyncio import Redis

from authcore.api.cookies import ACCESS_TOKEN_COOKIE
from authcore.core.redis import get_redis
from authcore.core.security import TokenIssuer
from authcore.db.session import get_db
from authcore.models.user import User
from authcore.services.auth_service import AuthService
from authcore.services.rate_limiter import RateLimiter

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_issuer(request: Request) -> TokenIssuer:
    """Dependency returning the application's token issuer."""
    return request.app.state.token_issuer


def get_rate_limiter(
    request: Request,
    redis: Redis = Depends(get_redis),
) -> RateLimiter:
    """Dependency returning a limiter over the shared Redis counters."""
    return RateLimiter(redis, request.app.state.rate_limit_policies)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> AuthService:
    """Dependency building the session orchestrator for one request."""
    return AuthService(db, token_issuer, rate_limiter)


def get_access_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Access token from the ``accessToken`` cookie, falling back to a bearer header."""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token
    if credentials is not None:
        return credentials.credentials
    return None


async def get_current_user(
    token: Optional[str] = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Dependency to get the current authenticated user.

    Raises:
        InvalidOrExpiredToken: Token missing or invalid (401)
        UserNotFound: Token subject deleted (404)
    """
    user, _ = await auth_service.authenticate_access_token(token)
    return user

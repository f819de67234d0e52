"""
Authentication API endpoints.

Tokens travel in http-only cookies: ``accessToken`` (15 min),
``refreshToken`` (7 days) and ``fingerprint`` (7 days).
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from authcore.api.cookies import (
    ACCESS_TOKEN_COOKIE,
    FINGERPRINT_COOKIE,
    REFRESH_TOKEN_COOKIE,
    clear_session_cookies,
    secure_cookies,
    set_bearer_cookie,
    set_session_cookies,
)
from authcore.api.deps import (
    bearer_scheme,
    get_auth_service,
    get_current_user,
    get_token_issuer,
)
from authcore.core.exceptions import (
    AuthError,
    InternalServerError,
    InvalidOrExpiredToken,
    RateLimitExceeded,
)
from authcore.core.security import TokenIssuer
from authcore.models.user import User
from authcore.schemas.user import (
    BearerTokenResponse,
    ErrorResponse,
    LogoutResponse,
    SessionResponse,
    SessionUser,
    UserCreate,
    UserLogin,
)
from authcore.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_RESPONSES = {
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def error_response(error: AuthError) -> JSONResponse:
    """Render an auth error as ``{"error": message}``."""
    headers = None
    if isinstance(error, RateLimitExceeded):
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.message},
        headers=headers,
    )


@router.post(
    "/login",
    response_model=SessionResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def login(
    credentials: UserLogin,
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    User login.

    Rate limited per email (5 attempts per minute). Reuses the client's
    ``fingerprint`` cookie when present.

    **Returns:**
    - user: id, email, role, customerId, employeeId
    """
    try:
        session = await auth_service.login(
            credentials.email,
            credentials.password,
            supplied_fingerprint=request.cookies.get(FINGERPRINT_COOKIE),
        )
    except AuthError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during login: {e}", exc_info=True)
        raise InternalServerError()

    set_session_cookies(
        response,
        token_issuer,
        session.access_token,
        session.refresh_token,
        session.fingerprint,
        secure=secure_cookies(request),
    )
    return SessionResponse(user=SessionUser.from_user(session.user))


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Logout: revoke every refresh token of the cookie's user.

    Always succeeds; with no (or an invalid) ``accessToken`` cookie it only
    clears cookies.
    """
    claims = token_issuer.verify(request.cookies.get(ACCESS_TOKEN_COOKIE))
    if claims is not None:
        try:
            await auth_service.logout(claims["id"])
        except Exception as e:
            logger.error(f"Unexpected error during logout: {e}", exc_info=True)
            raise InternalServerError()

    clear_session_cookies(response, secure=secure_cookies(request))
    return LogoutResponse(success=True)


@router.post(
    "/refresh",
    response_model=SessionResponse,
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def refresh(
    request: Request,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Rotate the refresh token from the ``refreshToken`` cookie.

    Any token failure, including a fingerprint mismatch, answers 401 and
    clears the session cookies.
    """
    refresh_token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    fingerprint = request.cookies.get(FINGERPRINT_COOKIE)

    try:
        if not refresh_token:
            raise InvalidOrExpiredToken()
        session = await auth_service.refresh(refresh_token, supplied_fingerprint=fingerprint)
    except RateLimitExceeded as e:
        return error_response(e)
    except AuthError as e:
        failed = error_response(e)
        clear_session_cookies(failed, secure=secure_cookies(request))
        return failed
    except Exception as e:
        logger.error(f"Unexpected error during token refresh: {e}", exc_info=True)
        raise InternalServerError()

    set_session_cookies(
        response,
        token_issuer,
        session.access_token,
        session.refresh_token,
        session.fingerprint,
        secure=secure_cookies(request),
    )
    return SessionResponse(user=SessionUser.from_user(session.user))


@router.post(
    "/token/refresh",
    response_model=BearerTokenResponse,
    responses={**ERROR_RESPONSES, 404: {"model": ErrorResponse}},
    deprecated=True,
)
async def refresh_bearer_token(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
    token_issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Bearer-header refresh (deprecated; use ``/refresh``).

    Verifies the ``Authorization: Bearer`` token, checks the user still
    exists and issues a new access token, also set as the ``token`` cookie.
    """
    token = credentials.credentials if credentials else None
    try:
        new_token, _ = await auth_service.reissue_bearer_token(token)
    except AuthError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during bearer refresh: {e}", exc_info=True)
        raise InternalServerError()

    set_bearer_cookie(response, token_issuer, new_token, secure=secure_cookies(request))
    return BearerTokenResponse(token=new_token)


@router.post(
    "/register",
    response_model=SessionUser,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def register(
    user_data: UserCreate,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Register a new user.

    Creates the customer or employee profile matching the role. ADMIN
    cannot be self-assigned and answers 400.
    Rate limited per client address.
    """
    client_host = request.client.host if request.client else None
    try:
        user = await auth_service.register(
            email=user_data.email,
            password=user_data.password,
            name=user_data.name,
            role=user_data.role,
            device_fingerprint=request.cookies.get(FINGERPRINT_COOKIE),
            rate_limit_key=client_host,
        )
    except AuthError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during registration: {e}", exc_info=True)
        raise InternalServerError()

    return SessionUser.from_user(user)


@router.get("/me", response_model=SessionUser, response_model_exclude_none=True)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """
    Get current user information.

    Accepts the ``accessToken`` cookie or a bearer header.
    """
    return SessionUser.from_user(current_user)

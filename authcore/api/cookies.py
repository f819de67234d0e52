"""
Session cookies.

Token transport is an HTTP concern; the services only deal in strings.
Cookies are marked ``secure`` when the application's settings say it runs
in production.
"""
from fastapi import Request, Response

from authcore.core.security import TokenIssuer

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"
FINGERPRINT_COOKIE = "fingerprint"
BEARER_TOKEN_COOKIE = "token"

SESSION_COOKIES = (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, FINGERPRINT_COOKIE)


def secure_cookies(request: Request) -> bool:
    """Whether the running application's settings require secure cookies."""
    return request.app.state.settings.app.is_production


def _set_cookie(response: Response, key: str, value: str, max_age: int, secure: bool) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )


def set_session_cookies(
    response: Response,
    tokens: TokenIssuer,
    access_token: str,
    refresh_token: str,
    fingerprint: str,
    secure: bool = False,
) -> None:
    """Set access (15 min), refresh (7 days) and fingerprint (7 days) cookies."""
    _set_cookie(response, ACCESS_TOKEN_COOKIE, access_token, tokens.access_expires_in, secure)
    _set_cookie(response, REFRESH_TOKEN_COOKIE, refresh_token, tokens.refresh_expires_in, secure)
    _set_cookie(response, FINGERPRINT_COOKIE, fingerprint, tokens.refresh_expires_in, secure)


def set_bearer_cookie(response: Response, tokens: TokenIssuer, token: str, secure: bool = False) -> None:
    _set_cookie(response, BEARER_TOKEN_COOKIE, token, tokens.access_expires_in, secure)


def clear_session_cookies(response: Response, secure: bool = False) -> None:
    """Expire all three session cookies."""
    for key in SESSION_COOKIES:
        response.delete_cookie(
            key=key,
            path="/",
            httponly=True,
            secure=secure,
            samesite="strict",
        )

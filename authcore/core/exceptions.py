"""
Authentication error taxonomy.

Each error carries the HTTP status and the public message that is sent to
the client. Messages are deliberately generic for identity failures so the
caller cannot tell an unknown email from a wrong password.
"""
from typing import Optional


class AuthError(Exception):
    """Base class for errors surfaced by the auth core."""

    status_code: int = 400
    message: str = "Authentication error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class RateLimitExceeded(AuthError):
    """Too many attempts for one identity inside the sliding window."""

    status_code = 429
    message = "Too many login attempts"

    def __init__(self, retry_after: int = 0, message: Optional[str] = None):
        self.retry_after = max(int(retry_after), 0)
        super().__init__(message)


class InvalidCredentials(AuthError):
    """Unknown email or wrong password."""

    status_code = 401
    message = "Invalid email or password"


class InvalidOrExpiredToken(AuthError):
    """Bad signature, expired token, or no matching active store record."""

    status_code = 401
    message = "Invalid or expired token"


class FingerprintMismatch(InvalidOrExpiredToken):
    """
    Refresh token presented from a different device.

    Raised only after every refresh token of the user has been revoked.
    The client sees the same response as any other token failure.
    """

    def __init__(self, user_id=None, message: Optional[str] = None):
        self.user_id = user_id
        super().__init__(message)


class UserNotFound(AuthError):
    """Token verified but its subject no longer exists."""

    status_code = 404
    message = "User not found"


class WeakPassword(AuthError):
    """Signup password does not meet strength requirements."""

    status_code = 400
    message = "Password does not meet requirements"


class EmailAlreadyRegistered(AuthError):
    """Signup with an email that already has an account."""

    status_code = 409
    message = "Email already registered"


class InternalServerError(AuthError):
    """Unexpected failure (database down, etc.); no internal detail is exposed."""

    status_code = 500
    message = "Internal server error"


class RoleNotAllowed(AuthError):
    """Signup asked for a role that cannot be self-assigned."""

    status_code = 400
    message = "Role not allowed for signup"

"""
Security utilities for authentication.

Password hashing (passlib bcrypt), JWT signing and verification
(python-jose), and device fingerprint generation.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Tuple
from jose import JWTError, jwt
from passlib.context import CryptContext
import hashlib
import hmac
import logging
import secrets
import string
import uuid

from authcore.core.config import JWTSettings

logger = logging.getLogger(__name__)

# Password hashing context with explicit bcrypt configuration
# Using ident="2b" for maximum compatibility with bcrypt 4.x
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    bcrypt__rounds=12
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Audience claim per role
ROLE_AUDIENCES = {
    "CUSTOMER": "customer",
    "EMPLOYEE": "employee",
    "ADMIN": "admin",
}

FINGERPRINT_BYTES = 32


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        plain_password: Plain text password
        hashed_password: Bcrypt hashed password

    Returns:
        bool: True if password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Generate bcrypt password hash.

    Args:
        password: Plain text password

    Returns:
        str: Bcrypt hashed password
    """
    return pwd_context.hash(password)


def validate_password_strength(password: str) -> Tuple[bool, Optional[str]]:
    """
    Validate password meets strength requirements.

    Requirements:
    - At least 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character

    Args:
        password: Password to validate

    Returns:
        tuple: (is_valid, error_message)
    """
    if len(password) < 8:
        return False, "Password must be at least 8 characters"

    if not any(c.isupper() for c in password):
        return False, "Password must contain at least one uppercase letter"

    if not any(c.islower() for c in password):
        return False, "Password must contain at least one lowercase letter"

    if not any(c.isdigit() for c in password):
        return False, "Password must contain at least one digit"

    if not any(c in string.punctuation for c in password):
        return False, "Password must contain at least one special character"

    return True, None


def generate_fingerprint() -> str:
    """Generate a new opaque device fingerprint (32 random bytes, hex)."""
    return secrets.token_hex(FINGERPRINT_BYTES)


def derive_refresh_secret(access_secret: str) -> str:
    """
    Derive the refresh-token signing secret from the access secret.

    The result is stable for a given access secret but never equal to it,
    so an access token can never verify as a refresh token.
    """
    return hmac.new(access_secret.encode(), b"refresh", hashlib.sha256).hexdigest()


def audience_for_role(role: str) -> str:
    """Audience claim for a role name."""
    return ROLE_AUDIENCES.get(str(role).upper(), "user")


class TokenIssuer:
    """
    Mints and verifies signed access and refresh tokens.

    Access tokens carry the full claim bundle and live 15 minutes by default.
    Refresh tokens carry only the user id and fingerprint, live 7 days, and
    are signed with a separate secret.
    """

    def __init__(self, jwt_settings: JWTSettings):
        self.algorithm = jwt_settings.jwt_algorithm
        self.issuer = jwt_settings.jwt_issuer
        self.access_secret = jwt_settings.jwt_secret
        self.refresh_secret = (
            jwt_settings.jwt_refresh_secret or derive_refresh_secret(jwt_settings.jwt_secret)
        )
        self.access_ttl = timedelta(minutes=jwt_settings.jwt_expiration_minutes)
        self.refresh_ttl = timedelta(days=jwt_settings.jwt_refresh_expiration_days)

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self.access_ttl.total_seconds())

    @property
    def refresh_expires_in(self) -> int:
        """Refresh token lifetime in seconds."""
        return int(self.refresh_ttl.total_seconds())

    def issue_access_token(self, user, fingerprint: str) -> str:
        """
        Create a signed access token for a user bound to a fingerprint.

        Args:
            user: User model (needs id, email, role and optional profiles)
            fingerprint: Device fingerprint of the session

        Returns:
            str: Encoded JWT
        """
        now = datetime.utcnow()
        role = _role_name(user.role)
        claims: Dict[str, Any] = {
            "id": str(user.id),
            "email": user.email,
            "role": role,
            "customerId": _profile_id(user, "customer"),
            "employeeId": _profile_id(user, "employee"),
            "fingerprint": fingerprint,
            "iat": now,
            "exp": now + self.access_ttl,
            "iss": self.issuer,
            "aud": audience_for_role(role),
            "type": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(claims, self.access_secret, algorithm=self.algorithm)

    def issue_refresh_token(self, user, fingerprint: str) -> str:
        """
        Create a signed refresh token.

        A random jti keeps every issued token string unique, even when two
        are minted for the same user and fingerprint within one second.
        """
        now = datetime.utcnow()
        claims = {
            "id": str(user.id),
            "fingerprint": fingerprint,
            "iat": now,
            "exp": now + self.refresh_ttl,
            "type": REFRESH_TOKEN_TYPE,
            "jti": str(uuid.uuid4()),
        }
        return jwt.encode(claims, self.refresh_secret, algorithm=self.algorithm)

    def refresh_expires_at(self) -> datetime:
        """Expiry timestamp for a refresh token record created now."""
        return datetime.utcnow() + self.refresh_ttl

    def verify(self, token: Optional[str], is_refresh: bool = False) -> Optional[Dict[str, Any]]:
        """
        Decode and validate a token.

        Returns the claims, or None on any signature, expiry, issuer,
        audience or token-type failure. Never raises.
        """
        if not token:
            return None

        try:
            if is_refresh:
                claims = jwt.decode(
                    token,
                    self.refresh_secret,
                    algorithms=[self.algorithm],
                )
            else:
                # Audience varies by role, so it is checked against the known set below
                claims = jwt.decode(
                    token,
                    self.access_secret,
                    algorithms=[self.algorithm],
                    issuer=self.issuer,
                    options={"verify_aud": False},
                )
        except JWTError as e:
            logger.debug(f"Token verification failed: {e}")
            return None

        expected_type = REFRESH_TOKEN_TYPE if is_refresh else ACCESS_TOKEN_TYPE
        if claims.get("type") != expected_type:
            return None

        if not claims.get("id"):
            return None

        if not is_refresh and claims.get("aud") not in ROLE_AUDIENCES.values():
            return None

        return claims


def _role_name(role) -> str:
    return getattr(role, "value", role)


def _profile_id(user, relation: str) -> Optional[str]:
    profile = getattr(user, relation, None)
    return str(profile.id) if profile is not None else None

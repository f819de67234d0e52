"""Device fingerprint resolution."""
from typing import Optional

from authcore.core.security import generate_fingerprint


def resolve_fingerprint(supplied: Optional[str] = None) -> str:
    """Reuse a fingerprint the client already holds, or mint a new one."""
    if supplied and supplied.strip():
        return supplied.strip()
    return generate_fingerprint()


def short_fingerprint(fingerprint: Optional[str]) -> str:
    """First 8 characters, for log lines."""
    return fingerprint[:8] if fingerprint else "none"

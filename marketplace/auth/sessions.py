"""Signed session tokens (JWT, HS256)."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

ALGORITHM = "HS256"


def create_session_token(user_id: str, email: str, role: Optional[str] = None) -> str:
    """Issue a session token for a user.

    Args:
        user_id: Subject of the token
        email: Carried for log correlation only
        role: Role at issue time; the guard re-reads the role from the database

    Returns:
        Encoded JWT
    """
    from marketplace.config.settings import settings

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=settings.session_ttl_hours)).timestamp()),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=ALGORITHM)


def decode_session_token(token: str) -> Optional[dict[str, Any]]:
    """Decode and verify a session token. Returns None when invalid or expired."""
    from marketplace.config.settings import settings

    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None

    if not payload.get("sub"):
        return None
    return payload

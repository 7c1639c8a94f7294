"""
Bearer token helpers.

Login and password handling live in the account subsystem; this module only
issues and verifies the access token that carries the authenticated user id.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from careconnect.core.config import settings


def create_access_token(user_id: UUID | str, expires_minutes: int | None = None) -> str:
    """Create JWT access token."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.auth.access_token_expire_minutes
    )
    payload = {
        "sub": str(user_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(
        payload,
        settings.auth.secret_key,
        algorithm=settings.auth.algorithm,
    )


def decode_access_token(token: str) -> UUID | None:
    """Return the user id carried by a valid access token, else None."""
    try:
        payload = jwt.decode(
            token,
            settings.auth.secret_key,
            algorithms=[settings.auth.algorithm],
        )
    except JWTError:
        return None

    if payload.get("type") != "access":
        return None

    try:
        return UUID(payload["sub"])
    except (KeyError, ValueError):
        return None

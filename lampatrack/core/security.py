"""Security utilities for JWT handling."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from lampatrack.config import settings


ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60


class InvalidTokenError(Exception):
    """Raised when a JWT cannot be decoded or is invalid."""


def create_access_token(
    subject: str | Any,
    role: str = "authenticated",
    expires_minutes: int | None = None,
) -> str:
    """Create a signed JWT access token for the supplied subject."""

    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes or ACCESS_TOKEN_EXPIRE_MINUTES)
    payload: Dict[str, Any] = {"exp": expire, "sub": str(subject), "role": role, "type": "access"}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode a JWT and return its payload, raising ``InvalidTokenError`` if invalid."""

    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc

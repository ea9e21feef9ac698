"""
Bearer-token verification for HS256 tokens issued by the identity provider.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from maison_api.config import Settings

ALGORITHM = "HS256"


class AuthError(Exception):
    """Raised when a bearer token is missing or invalid."""


def create_access_token(
    user_id: str, settings: Settings, expires_in_seconds: int = 3600
) -> str:
    """Issue a token the way the identity provider does (used by tests and scripts)."""
    expire = datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds)
    payload = {"sub": user_id, "aud": settings.jwt_audience, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_user_id(token: str, settings: Settings) -> str:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        raise AuthError(str(e)) from e
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Token has no subject")
    return str(user_id)

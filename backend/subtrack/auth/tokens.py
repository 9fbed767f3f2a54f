"""JWT access token creation and verification."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from subtrack.config import settings


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived access token for ``user_id``.

    SubTrack normally only verifies tokens issued by the auth service; the
    test suite uses this to mint bearer tokens.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    to_encode = {"sub": str(user_id), "exp": expire, "iat": now, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])

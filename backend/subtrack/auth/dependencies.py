"""FastAPI authentication dependencies for route protection."""

import logging
import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from subtrack.auth.tokens import decode_token
from subtrack.database import get_db
from subtrack.exceptions import AuthenticationError, InactiveUser
from subtrack.models.user import User

logger = logging.getLogger(__name__)

# A missing Authorization header is rejected by HTTPBearer itself
_bearer_scheme = HTTPBearer()


def user_id_from_token(token: str) -> uuid.UUID:
    """Return the user id carried by a valid access token.

    Raises:
        AuthenticationError: bad signature, expired, not an access token,
            or a subject that is not a UUID.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise AuthenticationError("Could not validate credentials") from None

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Could not validate credentials") from None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active ``User``.

    Rejections are 401 responses rendered by the ``SubTrackError`` handler,
    with ``code`` set to ``INVALID_TOKEN`` or ``USER_INACTIVE``.
    """
    user_id = user_id_from_token(credentials.credentials)

    user = await db.get(User, user_id)
    if user is None:
        logger.info("Token for unknown user rejected: user_id=%s", user_id)
        raise AuthenticationError("Could not validate credentials")
    if not user.is_active:
        logger.info("Token for inactive user rejected: user_id=%s", user_id)
        raise InactiveUser()

    return user

"""Bearer Auth — resolves the caller's user id from an HS256 JWT.

Invariants:
    - Missing Authorization header → 401 "Missing auth token."
    - Undecodable, expired, or non-UUID `sub` → 401 "Invalid auth token."
    - Audience verified only when settings.jwt_audience is configured

Design Decisions:
    - HTTPBearer(auto_error=False): the dependency owns the 401 wording instead
      of FastAPI's default 403
"""

import logging
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from conxion.config import get_settings
from conxion.core.errors import AuthenticationError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def decode_user_id(token: str) -> UUID:
    """Decode a bearer token and return its subject as a UUID."""
    settings = get_settings()
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
        return UUID(str(claims["sub"]))
    except (jwt.PyJWTError, KeyError, ValueError) as e:
        logger.info(f"Rejected bearer token: {e}")
        raise AuthenticationError("Invalid auth token.")


def require_user_id(credentials: HTTPAuthorizationCredentials | None) -> UUID:
    """Resolve the caller from already-extracted credentials.

    For routes that must validate their body before authenticating: they take
    `credentials=Depends(security)` and call this after their own checks.
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Missing auth token.")
    return decode_user_id(credentials.credentials)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> UUID:
    """FastAPI dependency: authenticated user id."""
    return require_user_id(credentials)

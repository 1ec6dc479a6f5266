"""FastAPI auth dependencies (the session guard).

Learn: get_current_user is attached at router-include level (see
api/__init__.py), so every protected route runs it before the handler.
It pulls the bearer token out of the Authorization header, verifies it,
and hands downstream code a CurrentIdentity. There is no silent refresh —
an expired token means the client has to log in again.
"""

import uuid
from typing import Optional

import structlog
from fastapi import Header

from taskmate.auth.jwt import TokenError, TokenExpiredError, verify_token
from taskmate.errors import UnauthenticatedError

logger = structlog.get_logger()


class CurrentIdentity:
    """The authenticated user making the request."""

    def __init__(self, user_id: str):
        self.user_id = user_id

    @property
    def user_uuid(self) -> uuid.UUID:
        return uuid.UUID(self.user_id)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from `Bearer <token>`, or raise UnauthenticatedError."""
    if not authorization:
        raise UnauthenticatedError("No token, authorization denied")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthenticatedError(
            "Invalid Authorization header format. Expected: Bearer <token>"
        )
    return parts[1]


async def get_current_user(
    authorization: Optional[str] = Header(None),
) -> CurrentIdentity:
    """Resolve the acting user (401 without a valid token)."""
    token = extract_bearer_token(authorization)
    try:
        user_id = verify_token(token)
        uuid.UUID(user_id)
    except TokenExpiredError:
        raise UnauthenticatedError("Token has expired")
    except (TokenError, ValueError):
        raise UnauthenticatedError("Token is not valid")

    structlog.contextvars.bind_contextvars(user_id=user_id)
    return CurrentIdentity(user_id=user_id)

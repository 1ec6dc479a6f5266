"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
The token carries the user id (`sub`), the issue time (`iat`, also used
as `nbf` so a token is never valid before it was issued) and an expiry.
HS256 makes it tamper-evident but not encrypted — never put secrets in it.

Every caller passes an explicit ttl; there is no implicit default lifetime.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from taskmate.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


class TokenExpiredError(TokenError):
    """The token was valid once but its ttl has passed."""


class InvalidTokenError(TokenError):
    """Bad signature, malformed token, or missing claims."""


def access_token_ttl() -> timedelta:
    return timedelta(minutes=settings.access_token_expire_minutes)


def oauth_token_ttl() -> timedelta:
    return timedelta(minutes=settings.oauth_token_expire_minutes)


def issue_token(
    user_id: str,
    ttl: timedelta,
    token_type: str = "access",
    now: Optional[datetime] = None,
) -> str:
    """Create a signed session token for `user_id` valid for `ttl`."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": issued_at,
        "nbf": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str = "access") -> dict:
    """Verify signature, time window and type. Returns the payload dict.

    Raises TokenExpiredError or InvalidTokenError.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(f"Invalid token: {e}")

    if payload.get("type", "access") != token_type:
        raise InvalidTokenError(f"Invalid token: expected {token_type} token")
    return payload


def verify_token(token: str) -> str:
    """Verify a session token and return the user id it was issued for."""
    return decode_token(token)["sub"]

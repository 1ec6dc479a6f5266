"""Auth service — registration, password login and Google sign-in.

Learn: Each method is a self-contained state machine for one request:
validate input → look up/create the user via UserService → issue a
session token. Nothing is remembered between requests.

Token lifetimes:
- password register/login: settings.access_token_expire_minutes (1h)
- Google callback: settings.oauth_token_expire_minutes (24h)

Account linking: a Google login whose verified email matches an existing
password account (with no Google id yet) is linked to that account when
settings.link_oauth_by_email is on. Otherwise the login is rejected
rather than creating a second account with the same email.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.auth.jwt import access_token_ttl, issue_token, oauth_token_ttl
from taskmate.auth.oauth import OAuthError, OAuthProfile
from taskmate.auth.password import hash_password_async, verify_password_async
from taskmate.config import settings
from taskmate.db.models import User
from taskmate.errors import BadRequestError, ConflictError, InvalidCredentialsError
from taskmate.services.user_service import UserService

logger = structlog.get_logger()


@dataclass
class AuthResult:
    token: str
    user: User


def _blank(value) -> bool:
    return value is None or not str(value).strip()


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserService(db)

    # ─── Register ────────────────────────────────────────

    async def register(self, name: str, email: str, password: str) -> AuthResult:
        if _blank(name) or _blank(email) or _blank(password):
            raise BadRequestError("All fields are required")

        if await self.users.find_by_email(email):
            raise ConflictError("User already exists")

        password_hash = await hash_password_async(password)
        user = await self.users.create_password_user(
            name=name.strip(), email=email, password_hash=password_hash
        )
        logger.info("auth.registered", user_id=str(user.id))
        return AuthResult(token=issue_token(str(user.id), access_token_ttl()), user=user)

    # ─── Login ───────────────────────────────────────────

    async def login(self, email: str, password: str) -> AuthResult:
        """Password login. Unknown email and wrong password look identical."""
        if _blank(email) or _blank(password):
            raise BadRequestError("All fields are required")

        user = await self.users.find_by_email(email)
        if not user or not user.password_hash:
            logger.info("auth.login_failed")
            raise InvalidCredentialsError()

        if not await verify_password_async(password, user.password_hash):
            logger.info("auth.login_failed")
            raise InvalidCredentialsError()

        logger.info("auth.logged_in", user_id=str(user.id))
        return AuthResult(token=issue_token(str(user.id), access_token_ttl()), user=user)

    # ─── Google ──────────────────────────────────────────

    async def oauth_login(self, profile: OAuthProfile) -> AuthResult:
        """Resolve (or create) the user behind a Google profile."""
        user = await self.users.find_by_oauth_id(profile.oauth_id)

        if user is None:
            if not profile.email:
                raise OAuthError("Google profile has no email address")

            existing = await self.users.find_by_email(profile.email)
            if existing is not None:
                user = await self._link_existing(existing, profile)
            else:
                user = await self.users.create_oauth_user(
                    oauth_id=profile.oauth_id,
                    name=profile.name,
                    email=profile.email,
                    avatar_url=profile.avatar_url,
                )
                logger.info("auth.oauth_registered", user_id=str(user.id))

        logger.info("auth.oauth_logged_in", user_id=str(user.id))
        return AuthResult(token=issue_token(str(user.id), oauth_token_ttl()), user=user)

    async def _link_existing(self, existing: User, profile: OAuthProfile) -> User:
        if (
            not settings.link_oauth_by_email
            or existing.oauth_id is not None
            or not profile.email_verified
        ):
            logger.warning("auth.oauth_link_rejected", user_id=str(existing.id))
            raise ConflictError("Email already registered with another sign-in method")
        return await self.users.link_oauth(existing, profile.oauth_id, profile.avatar_url)

"""User service — the credential store.

Learn: Owns identity records. A user carries a bcrypt password hash,
a Google OAuth id, or both. Emails are normalised (trimmed, lower-cased)
before every read and write, which is what makes the unique index
case-insensitive.
"""

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskmate.db.models import User
from taskmate.errors import ConflictError

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Lookup and creation of user identities."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Read ────────────────────────────────────────────

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_many(self, user_ids: Iterable[uuid.UUID]) -> list[User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalars().first()

    async def find_by_oauth_id(self, oauth_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.oauth_id == oauth_id))
        return result.scalars().first()

    async def list_all(self) -> list[User]:
        """Every user, for the assignee picker. No paging, no filtering."""
        result = await self.db.execute(select(User).order_by(User.name, User.email))
        return list(result.scalars().all())

    # ─── Create ──────────────────────────────────────────

    async def create_password_user(
        self, name: str, email: str, password_hash: str
    ) -> User:
        """Create a password-backed user. Raises ConflictError on duplicate email."""
        if await self.find_by_email(email):
            raise ConflictError()

        user = User(
            name=name,
            email=normalize_email(email),
            password_hash=password_hash,
        )
        return await self._insert(user)

    async def create_oauth_user(
        self,
        oauth_id: str,
        name: str,
        email: str,
        avatar_url: Optional[str] = None,
    ) -> User:
        user = User(
            oauth_id=oauth_id,
            name=name,
            email=normalize_email(email),
            avatar_url=avatar_url,
        )
        return await self._insert(user)

    # ─── Update ──────────────────────────────────────────

    async def link_oauth(
        self, user: User, oauth_id: str, avatar_url: Optional[str] = None
    ) -> User:
        """Bind a Google identity to an existing (password) account."""
        user.oauth_id = oauth_id
        if avatar_url and not user.avatar_url:
            user.avatar_url = avatar_url
        await self.db.commit()
        logger.info("users.oauth_linked", user_id=str(user.id))
        return user

    async def _insert(self, user: User) -> User:
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email/oauth id
            await self.db.rollback()
            raise ConflictError()
        await self.db.refresh(user)
        logger.info("users.created", user_id=str(user.id))
        return user

"""User service — accounts and credential checks."""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.auth.password import hash_password, verify_password
from eventhub.db.models import ROLE_USER, User

logger = structlog.get_logger()


class UsernameTakenError(Exception):
    """Raised when registering a username that already exists."""


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def create_user(
        self, username: str, password: str, role: str = ROLE_USER
    ) -> User:
        if await self.get_by_username(username):
            raise UsernameTakenError(username)

        user = User(
            username=username,
            password_hash=hash_password(password),
            role=role,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Someone else took the name between our check and insert
            await self.db.rollback()
            raise UsernameTakenError(username) from None

        logger.info("user.created", user_id=user.id, role=role)
        return user

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Return the user if the credentials match, else None."""
        user = await self.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

"""Server-side session store.

A session is a random token handed to the browser in an HttpOnly cookie.
Only the SHA-256 of the token is persisted, the same way API keys are
usually stored, so the raw value exists only in the client's cookie jar.
"""

import hashlib
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from eventhub.config import settings
from eventhub.db.models import User, UserSession, utcnow


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class SessionStore:
    """Create, resolve and destroy login sessions."""

    def __init__(self, db: AsyncSession, max_age_hours: Optional[int] = None):
        self.db = db
        self.max_age = timedelta(hours=max_age_hours or settings.session_max_age_hours)

    async def create(self, user_id: int) -> str:
        """Start a session for a user and return the raw cookie token."""
        token = secrets.token_urlsafe(32)
        now = utcnow()

        # Drop this user's expired sessions while we're here
        await self.db.execute(
            delete(UserSession).where(
                UserSession.user_id == user_id,
                UserSession.expires_at <= now,
            )
        )
        self.db.add(
            UserSession(
                token_hash=_digest(token),
                user_id=user_id,
                expires_at=now + self.max_age,
            )
        )
        await self.db.commit()
        return token

    async def resolve(self, token: str) -> Optional[User]:
        """Return the user behind a token, or None if unknown or expired."""
        result = await self.db.execute(
            select(UserSession)
            .where(
                UserSession.token_hash == _digest(token),
                UserSession.expires_at > utcnow(),
            )
            .options(selectinload(UserSession.user))
        )
        session = result.scalars().first()
        return session.user if session else None

    async def destroy(self, token: str) -> bool:
        """Delete the session for a token. Returns True if one existed."""
        result = await self.db.execute(
            delete(UserSession).where(UserSession.token_hash == _digest(token))
        )
        await self.db.commit()
        return result.rowcount > 0

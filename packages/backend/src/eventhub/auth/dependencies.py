"""FastAPI auth dependencies.

These are used as Depends() in route handlers to resolve the session cookie
into the current User. Three strengths:

1. get_current_user_optional — anonymous viewers allowed (returns None)
2. get_current_user — any logged-in user, 401 otherwise
3. get_current_organizer — logged-in organizer, 401 otherwise
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.auth.sessions import SessionStore
from eventhub.config import settings
from eventhub.db.engine import get_db
from eventhub.db.models import User


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Resolve the session cookie, or None for anonymous/stale sessions.

    Used for endpoints that work both authenticated and unauthenticated,
    such as browsing events.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    return await SessionStore(db).resolve(token)


async def get_current_user(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Require a logged-in user."""
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


async def get_current_organizer(
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """Require a logged-in organizer.

    Missing identity and the wrong role both answer 401 — the client
    treats them the same way (send the user to log in as an organizer).
    """
    if user is None or not user.is_organizer:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user

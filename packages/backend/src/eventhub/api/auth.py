"""Auth API — account registration, login, logout, current user.

- POST /auth/register → create account, start a session
- POST /auth/login → username/password → session cookie
- POST /auth/logout → destroy session, clear cookie
- GET /auth/me → current user

Login and register always regenerate the session: any session the client
arrived with is destroyed and a fresh token is issued (session fixation).
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.auth.dependencies import get_current_user
from eventhub.auth.sessions import SessionStore
from eventhub.config import settings
from eventhub.db.engine import get_db
from eventhub.db.models import User
from eventhub.schemas.common import MessageResponse
from eventhub.schemas.user import LoginRequest, RegisterRequest, UserRead
from eventhub.services.user_service import UsernameTakenError, UserService

router = APIRouter(prefix="/auth")


async def _start_session(
    request: Request, response: Response, db: AsyncSession, user: User
) -> None:
    """Replace whatever session the client had with a new one for user."""
    store = SessionStore(db)
    old_token: Optional[str] = request.cookies.get(settings.session_cookie_name)
    if old_token:
        await store.destroy(old_token)

    token = await store.create(user.id)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age_hours * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create a new account and log it in."""
    try:
        user = await UserService(db).create_user(
            username=body.username,
            password=body.password,
            role=body.role,
        )
    except UsernameTakenError:
        raise HTTPException(status_code=400, detail="Username already exists")

    await _start_session(request, response, db, user)
    return user


# ─── Login / logout ──────────────────────────────────────


@router.post("/login", response_model=UserRead)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Login with username and password → session cookie."""
    user = await UserService(db).authenticate(body.username, body.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    await _start_session(request, response, db, user)
    return user


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Destroy the server-side session. Safe to call when logged out."""
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        await SessionStore(db).destroy(token)
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return {"message": "Logged out"}


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(user: User = Depends(get_current_user)):
    """Get the current authenticated user's info."""
    return user

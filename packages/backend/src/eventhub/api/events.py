"""Event and registration API routes.

- GET    /events                     → all events with counts (public)
- GET    /events/mine                → the organizer's own events
- GET    /events/{id}                → one event with count (public)
- POST   /events                     → create (organizer)
- DELETE /events/{id}                → delete (owning organizer)
- POST   /events/{id}/registrations  → register the current user
- GET    /events/{id}/registrations  → who registered (owning organizer)

Routes handle HTTP concerns (status codes, error responses); services
handle business logic. The connection registry, publisher and admission
locks live on app.state and are handed to services explicitly.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.api.errors import ApiError
from eventhub.auth.dependencies import (
    get_current_organizer,
    get_current_user,
    get_current_user_optional,
)
from eventhub.db.engine import get_db
from eventhub.db.models import Event, User
from eventhub.schemas.common import ErrorResponse
from eventhub.schemas.event import (
    EventCreate,
    EventRead,
    EventWithStatus,
    RegistrationRead,
)
from eventhub.services.event_service import EventService, NotEventOwnerError
from eventhub.services.read_model import EventReadModel
from eventhub.services.registration_service import (
    EventNotFoundError,
    RegistrationError,
    RegistrationService,
)

router = APIRouter(prefix="/events")


def _read_model(db: AsyncSession = Depends(get_db)) -> EventReadModel:
    return EventReadModel(db)


def _event_svc(request: Request, db: AsyncSession = Depends(get_db)) -> EventService:
    return EventService(db, publisher=request.app.state.publisher)


def _registration_svc(
    request: Request, db: AsyncSession = Depends(get_db)
) -> RegistrationService:
    return RegistrationService(
        db,
        locks=request.app.state.admission_locks,
        publisher=request.app.state.publisher,
    )


async def _managed_event(
    event_id: int, svc: EventService, user: Optional[User]
) -> Event:
    """Load an event for a management action: 401 if anonymous, 404 if missing.

    Ownership itself is checked by EventService.
    """
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    event = await svc.get_event(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


# ─── Read model ─────────────────────────────────────────

@router.get("", response_model=list[EventWithStatus])
async def list_events(
    viewer: Optional[User] = Depends(get_current_user_optional),
    read_model: EventReadModel = Depends(_read_model),
):
    return await read_model.list_events(viewer.id if viewer else None)


@router.get("/mine", response_model=list[EventWithStatus])
async def list_my_events(
    organizer: User = Depends(get_current_organizer),
    read_model: EventReadModel = Depends(_read_model),
):
    """Registration numbers for the organizer's dashboard."""
    return await read_model.list_organizer_events(organizer.id)


@router.get("/{event_id}", response_model=EventWithStatus)
async def get_event(
    event_id: int,
    viewer: Optional[User] = Depends(get_current_user_optional),
    read_model: EventReadModel = Depends(_read_model),
):
    event = await read_model.get_event(event_id, viewer.id if viewer else None)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


# ─── Event CRUD ─────────────────────────────────────────

@router.post("", response_model=EventRead, status_code=201)
async def create_event(
    body: EventCreate,
    organizer: User = Depends(get_current_organizer),
    svc: EventService = Depends(_event_svc),
):
    return await svc.create_event(organizer, body)


@router.delete("/{event_id}", status_code=204)
async def delete_event(
    event_id: int,
    user: Optional[User] = Depends(get_current_user_optional),
    svc: EventService = Depends(_event_svc),
):
    event = await _managed_event(event_id, svc, user)
    try:
        await svc.delete_event(event, user)
    except NotEventOwnerError:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return Response(status_code=204)


# ─── Registrations ──────────────────────────────────────

@router.post(
    "/{event_id}/registrations",
    response_model=RegistrationRead,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def register_for_event(
    event_id: int,
    user: User = Depends(get_current_user),
    svc: RegistrationService = Depends(_registration_svc),
):
    """Take a seat at an event. 400 with code event_full / already_registered."""
    try:
        return await svc.register(user.id, event_id)
    except EventNotFoundError as e:
        raise ApiError(404, e.message, e.code)
    except RegistrationError as e:
        raise ApiError(400, e.message, e.code)


@router.get("/{event_id}/registrations", response_model=list[RegistrationRead])
async def list_event_registrations(
    event_id: int,
    user: Optional[User] = Depends(get_current_user_optional),
    svc: EventService = Depends(_event_svc),
):
    event = await _managed_event(event_id, svc, user)
    try:
        return await svc.list_registrations(event, user)
    except NotEventOwnerError:
        raise HTTPException(status_code=401, detail="Unauthorized")

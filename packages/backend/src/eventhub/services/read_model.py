"""Event read model — events with live registration counts.

The count is never stored. Every read aggregates the registrations table,
so what a viewer sees is always the committed truth and can never show more
registrations than the event allows. Nothing here is cached.

isRegistered is answered with one extra query for all of the viewer's
registrations, not one query per event.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.db.models import Event, Registration
from eventhub.schemas.event import EventWithStatus


def _with_counts():
    """SELECT events with their registration count, in a stable order."""
    registration_count = func.count(Registration.id).label("registration_count")
    return (
        select(Event, registration_count)
        .outerjoin(Registration, Registration.event_id == Event.id)
        .group_by(Event.id)
        .order_by(Event.date, Event.id)
    )


def _view(event: Event, count: int, registered: bool) -> EventWithStatus:
    return EventWithStatus(
        id=event.id,
        organizer_id=event.organizer_id,
        title=event.title,
        description=event.description,
        date=event.date,
        location=event.location,
        max_participants=event.max_participants,
        created_at=event.created_at,
        registration_count=count,
        is_registered=registered,
    )


class EventReadModel:
    """Computed per-event views for listing and detail pages."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_events(
        self, viewer_id: Optional[int] = None
    ) -> list[EventWithStatus]:
        result = await self.db.execute(_with_counts())
        rows = result.all()
        registered = await self._registered_event_ids(viewer_id)
        return [
            _view(event, count, event.id in registered) for event, count in rows
        ]

    async def get_event(
        self, event_id: int, viewer_id: Optional[int] = None
    ) -> Optional[EventWithStatus]:
        result = await self.db.execute(_with_counts().where(Event.id == event_id))
        row = result.first()
        if row is None:
            return None
        event, count = row
        registered = await self._registered_event_ids(viewer_id, event_id)
        return _view(event, count, event.id in registered)

    async def list_organizer_events(self, organizer_id: int) -> list[EventWithStatus]:
        """An organizer's own events — the numbers behind their dashboard."""
        result = await self.db.execute(
            _with_counts().where(Event.organizer_id == organizer_id)
        )
        return [_view(event, count, False) for event, count in result.all()]

    async def _registered_event_ids(
        self, viewer_id: Optional[int], event_id: Optional[int] = None
    ) -> set[int]:
        if viewer_id is None:
            return set()
        q = select(Registration.event_id).where(Registration.user_id == viewer_id)
        if event_id is not None:
            q = q.where(Registration.event_id == event_id)
        result = await self.db.execute(q)
        return set(result.scalars().all())

"""Event service — organizer-side event management.

Service layer separates business logic from HTTP routing. Routes resolve
the caller and map errors to status codes; the service enforces ownership
and keeps the event and its registrations consistent.
"""

from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.db.models import Event, Registration, User
from eventhub.realtime.messages import registrations_changed
from eventhub.realtime.pubsub import ChangePublisher
from eventhub.schemas.event import EventCreate

logger = structlog.get_logger()


class NotEventOwnerError(Exception):
    """Raised when someone other than the owning organizer manages an event."""


class EventService:
    """Business logic for creating and removing events."""

    def __init__(self, db: AsyncSession, publisher: Optional[ChangePublisher] = None):
        self.db = db
        self.publisher = publisher

    async def create_event(self, organizer: User, data: EventCreate) -> Event:
        event = Event(
            organizer_id=organizer.id,
            title=data.title,
            description=data.description,
            date=data.date,
            location=data.location,
            max_participants=data.max_participants,
        )
        self.db.add(event)
        await self.db.commit()
        logger.info(
            "event.created",
            event_id=event.id,
            organizer_id=organizer.id,
            max_participants=event.max_participants,
        )
        return event

    async def get_event(self, event_id: int) -> Event | None:
        return await self.db.get(Event, event_id)

    async def delete_event(self, event: Event, requester: User) -> None:
        """Delete an event and all of its registrations in one transaction."""
        self._check_owner(event, requester)
        event_id = event.id

        await self.db.execute(
            delete(Registration).where(Registration.event_id == event_id)
        )
        await self.db.execute(delete(Event).where(Event.id == event_id))
        await self.db.commit()
        logger.info("event.deleted", event_id=event_id, organizer_id=requester.id)

        # Its registrations are gone, so counts changed for anyone watching
        if self.publisher is not None:
            try:
                await self.publisher.publish(registrations_changed(event_id))
            except Exception as e:
                logger.warning("event.notify_failed", event_id=event_id, error=str(e))

    async def list_registrations(
        self, event: Event, requester: User
    ) -> list[Registration]:
        """The event's registrations, oldest first. Owner only."""
        self._check_owner(event, requester)
        result = await self.db.execute(
            select(Registration)
            .where(Registration.event_id == event.id)
            .order_by(Registration.created_at, Registration.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def _check_owner(event: Event, requester: User) -> None:
        if not requester.is_organizer or event.organizer_id != requester.id:
            raise NotEventOwnerError(
                f"User {requester.id} does not own event {event.id}"
            )

"""Registration service — admission control for event capacity.

This is the CORE of the platform. A registration is admitted only if:
1. the event exists                      → EventNotFoundError otherwise
2. the user isn't registered yet         → DuplicateRegistrationError
3. the event still has a free seat       → EventFullError

The duplicate check runs before the capacity check so that repeating a
successful registration always answers "Already registered", even when that
registration took the last seat.

Checks and insert happen in ONE transaction while holding the event's
admission lock (in-process) and the event row lock (SELECT ... FOR UPDATE,
cross-process on Postgres). Two requests for the last seat therefore run
one after the other and the second one sees the first one's row. The unique
(user_id, event_id) constraint backs up the duplicate check structurally.

Only after commit is a change notification published. Notification failure
is logged and never undoes a committed registration.
"""

from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.db.models import Event, Registration
from eventhub.realtime.messages import registrations_changed
from eventhub.realtime.pubsub import ChangePublisher
from eventhub.services.admission import AdmissionLocks

logger = structlog.get_logger()


class RegistrationError(Exception):
    """Base class for rejected registrations."""

    message = "Registration rejected"
    code = "registration_rejected"

    def __init__(self, event_id: int):
        super().__init__(self.message)
        self.event_id = event_id


class EventNotFoundError(RegistrationError):
    message = "Event not found"
    code = "not_found"


class EventFullError(RegistrationError):
    message = "Event is full"
    code = "event_full"


class DuplicateRegistrationError(RegistrationError):
    message = "Already registered"
    code = "already_registered"


class RegistrationService:
    """Admits or rejects registration attempts."""

    def __init__(
        self,
        db: AsyncSession,
        locks: AdmissionLocks,
        publisher: Optional[ChangePublisher] = None,
    ):
        self.db = db
        self.locks = locks
        self.publisher = publisher

    async def register(self, user_id: int, event_id: int) -> Registration:
        """Register a user for an event, or raise a RegistrationError."""
        async with self.locks.hold(event_id):
            try:
                registration = await self._admit(user_id, event_id)
                await self.db.commit()
            except RegistrationError as e:
                await self.db.rollback()
                logger.info(
                    "registration.rejected",
                    user_id=user_id,
                    event_id=event_id,
                    reason=e.code,
                )
                raise
            except IntegrityError:
                # Lost a race: either another process registered the same
                # pair, or the event was deleted after we read it
                await self.db.rollback()
                rejected = (
                    DuplicateRegistrationError
                    if await self._event_exists(event_id)
                    else EventNotFoundError
                )
                logger.info(
                    "registration.rejected",
                    user_id=user_id,
                    event_id=event_id,
                    reason=rejected.code,
                )
                raise rejected(event_id) from None

        logger.info(
            "registration.created",
            registration_id=registration.id,
            user_id=user_id,
            event_id=event_id,
        )
        await self._notify(event_id)
        return registration

    async def _admit(self, user_id: int, event_id: int) -> Registration:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id).with_for_update()
        )
        event = result.scalars().first()
        if event is None:
            raise EventNotFoundError(event_id)

        existing = await self.db.execute(
            select(Registration.id).where(
                Registration.user_id == user_id,
                Registration.event_id == event_id,
            )
        )
        if existing.first() is not None:
            raise DuplicateRegistrationError(event_id)

        count = await self.db.scalar(
            select(func.count(Registration.id)).where(
                Registration.event_id == event_id
            )
        )
        if count >= event.max_participants:
            raise EventFullError(event_id)

        registration = Registration(user_id=user_id, event_id=event_id)
        self.db.add(registration)
        await self.db.flush()  # get the auto-generated id
        return registration

    async def _event_exists(self, event_id: int) -> bool:
        found = await self.db.scalar(select(Event.id).where(Event.id == event_id))
        return found is not None

    async def _notify(self, event_id: int) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher.publish(registrations_changed(event_id))
        except Exception as e:
            logger.warning(
                "registration.notify_failed", event_id=event_id, error=str(e)
            )

"""Registration service tests — capacity, duplicates, races, notifications.

These talk to RegistrationService directly, one database session per
simulated request, the way concurrent HTTP requests would.

Pattern: test_<verb>_<noun>_<scenario>
"""

import asyncio

import pytest
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from conftest import RecordingPublisher
from eventhub.db.models import Event, Registration
from eventhub.services.admission import AdmissionLocks
from eventhub.services.registration_service import (
    DuplicateRegistrationError,
    EventFullError,
    EventNotFoundError,
    RegistrationService,
)


async def _count(session_factory, event_id: int) -> int:
    async with session_factory() as session:
        return await session.scalar(
            select(func.count(Registration.id)).where(Registration.event_id == event_id)
        )


async def _attempt(session_factory, locks, publisher, user_id, event_id):
    """One registration attempt in its own session, like one HTTP request."""
    async with session_factory() as session:
        svc = RegistrationService(session, locks, publisher)
        return await svc.register(user_id, event_id)


# ═══════════════════════════════════════════════════════════
# Sequential outcomes
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_succeeds_and_notifies(session_factory, make_user, make_event):
    user = await make_user()
    event = await make_event(max_participants=5)
    publisher = RecordingPublisher()

    reg = await _attempt(session_factory, AdmissionLocks(), publisher, user.id, event.id)

    assert reg.id is not None
    assert reg.user_id == user.id
    assert reg.event_id == event.id
    assert reg.created_at is not None
    assert publisher.messages == [{"type": "UPDATE_REGISTRATIONS", "eventId": event.id}]
    assert await _count(session_factory, event.id) == 1


@pytest.mark.asyncio
async def test_register_missing_event(session_factory, make_user):
    user = await make_user()
    publisher = RecordingPublisher()

    with pytest.raises(EventNotFoundError):
        await _attempt(session_factory, AdmissionLocks(), publisher, user.id, 9999)
    assert publisher.messages == []


@pytest.mark.asyncio
async def test_register_full_event(session_factory, make_user, make_event):
    """Once capacity is reached, new users are rejected with Full."""
    event = await make_event(max_participants=1)
    alice, bob = await make_user(), await make_user()
    locks, publisher = AdmissionLocks(), RecordingPublisher()

    await _attempt(session_factory, locks, publisher, alice.id, event.id)
    with pytest.raises(EventFullError) as exc:
        await _attempt(session_factory, locks, publisher, bob.id, event.id)

    assert exc.value.message == "Event is full"
    assert exc.value.code == "event_full"
    assert await _count(session_factory, event.id) == 1
    # Only the successful registration was announced
    assert len(publisher.messages) == 1


@pytest.mark.asyncio
async def test_register_twice_is_duplicate(session_factory, make_user, make_event):
    """Success, then Duplicate — never a second row."""
    event = await make_event(max_participants=5)
    user = await make_user()
    locks, publisher = AdmissionLocks(), RecordingPublisher()

    await _attempt(session_factory, locks, publisher, user.id, event.id)
    with pytest.raises(DuplicateRegistrationError) as exc:
        await _attempt(session_factory, locks, publisher, user.id, event.id)

    assert exc.value.message == "Already registered"
    assert await _count(session_factory, event.id) == 1


@pytest.mark.asyncio
async def test_register_twice_on_last_seat_is_duplicate(
    session_factory, make_user, make_event
):
    """Taking the last seat then retrying still answers Duplicate, not Full."""
    event = await make_event(max_participants=1)
    user = await make_user()
    locks, publisher = AdmissionLocks(), RecordingPublisher()

    await _attempt(session_factory, locks, publisher, user.id, event.id)
    with pytest.raises(DuplicateRegistrationError):
        await _attempt(session_factory, locks, publisher, user.id, event.id)


@pytest.mark.asyncio
async def test_register_survives_notification_failure(
    session_factory, make_user, make_event
):
    """A broken publisher never undoes a committed registration."""
    event = await make_event(max_participants=2)
    user = await make_user()

    reg = await _attempt(
        session_factory, AdmissionLocks(), RecordingPublisher(fail=True), user.id, event.id
    )

    assert reg.id is not None
    assert await _count(session_factory, event.id) == 1


@pytest.mark.asyncio
async def test_register_without_publisher(session_factory, make_user, make_event):
    event = await make_event()
    user = await make_user()
    reg = await _attempt(session_factory, AdmissionLocks(), None, user.id, event.id)
    assert reg.event_id == event.id


# ═══════════════════════════════════════════════════════════
# Races
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_race_for_last_seat_admits_exactly_one(
    session_factory, make_user, make_event
):
    """Two users, one seat, simultaneous requests: one wins, one is Full."""
    event = await make_event(max_participants=1)
    alice, bob = await make_user(), await make_user()
    locks, publisher = AdmissionLocks(), RecordingPublisher()

    results = await asyncio.gather(
        _attempt(session_factory, locks, publisher, alice.id, event.id),
        _attempt(session_factory, locks, publisher, bob.id, event.id),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, Registration)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], EventFullError)
    assert await _count(session_factory, event.id) == 1
    assert len(publisher.messages) == 1


@pytest.mark.asyncio
async def test_race_never_overcommits(session_factory, make_user, make_event):
    """Ten users racing for three seats: exactly three get in."""
    event = await make_event(max_participants=3)
    users = [await make_user() for _ in range(10)]
    locks, publisher = AdmissionLocks(), RecordingPublisher()

    results = await asyncio.gather(
        *(_attempt(session_factory, locks, publisher, u.id, event.id) for u in users),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, Registration)]
    assert len(successes) == 3
    assert all(
        isinstance(r, EventFullError) for r in results if not isinstance(r, Registration)
    )
    assert await _count(session_factory, event.id) == 3


@pytest.mark.asyncio
async def test_race_same_user_registers_once(session_factory, make_user, make_event):
    """The same user double-clicking: one row, the other call is Duplicate."""
    event = await make_event(max_participants=5)
    user = await make_user()
    locks, publisher = AdmissionLocks(), RecordingPublisher()

    results = await asyncio.gather(
        _attempt(session_factory, locks, publisher, user.id, event.id),
        _attempt(session_factory, locks, publisher, user.id, event.id),
        return_exceptions=True,
    )

    assert sum(isinstance(r, Registration) for r in results) == 1
    assert sum(isinstance(r, DuplicateRegistrationError) for r in results) == 1
    assert await _count(session_factory, event.id) == 1


@pytest.mark.asyncio
async def test_races_on_different_events_are_independent(
    session_factory, make_user, make_event
):
    first = await make_event(max_participants=1)
    second = await make_event(max_participants=1)
    user = await make_user()
    locks = AdmissionLocks()

    results = await asyncio.gather(
        _attempt(session_factory, locks, None, user.id, first.id),
        _attempt(session_factory, locks, None, user.id, second.id),
    )

    assert {r.event_id for r in results} == {first.id, second.id}


# ═══════════════════════════════════════════════════════════
# Storage-level backstop
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_unique_constraint_blocks_duplicate_rows(
    session_factory, make_user, make_event
):
    """Even bypassing the service, the store refuses a second row per pair."""
    event = await make_event()
    user = await make_user()

    async with session_factory() as session:
        session.add(Registration(user_id=user.id, event_id=event.id))
        await session.commit()

    async with session_factory() as session:
        session.add(Registration(user_id=user.id, event_id=event.id))
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.asyncio
async def test_failed_attempt_leaves_no_row(session_factory, make_user, make_event):
    event = await make_event(max_participants=1)
    alice, bob = await make_user(), await make_user()
    locks = AdmissionLocks()

    await _attempt(session_factory, locks, None, alice.id, event.id)
    with pytest.raises(EventFullError):
        await _attempt(session_factory, locks, None, bob.id, event.id)

    async with session_factory() as session:
        result = await session.execute(
            select(Registration.user_id).where(Registration.event_id == event.id)
        )
        assert list(result.scalars().all()) == [alice.id]


class UncheckedAdmission(RegistrationService):
    """Inserts without checking, like a request whose checks ran just
    before a rival's commit landed."""

    async def _admit(self, user_id: int, event_id: int) -> Registration:
        registration = Registration(user_id=user_id, event_id=event_id)
        self.db.add(registration)
        await self.db.flush()
        return registration


@pytest.mark.asyncio
async def test_constraint_violation_is_reported_as_duplicate(
    session_factory, make_user, make_event
):
    event = await make_event(max_participants=5)
    user = await make_user()
    await _attempt(session_factory, AdmissionLocks(), None, user.id, event.id)

    publisher = RecordingPublisher()
    async with session_factory() as session:
        svc = UncheckedAdmission(session, AdmissionLocks(), publisher)
        with pytest.raises(DuplicateRegistrationError):
            await svc.register(user.id, event.id)

    assert await _count(session_factory, event.id) == 1
    assert publisher.messages == []


@pytest.mark.asyncio
async def test_event_deleted_mid_admission_is_not_found(
    session_factory, make_user, make_event
):
    """The insert fails on the foreign key: that is a missing event, not a duplicate."""
    event = await make_event()
    user = await make_user()
    async with session_factory() as session:
        await session.execute(delete(Event).where(Event.id == event.id))
        await session.commit()

    async with session_factory() as session:
        svc = UncheckedAdmission(session, AdmissionLocks())
        with pytest.raises(EventNotFoundError):
            await svc.register(user.id, event.id)


@pytest.mark.asyncio
async def test_race_across_processes_same_user(session_factory, make_user, make_event):
    """Two processes (separate lock tables) racing the same user: one row."""
    event = await make_event(max_participants=5)
    user = await make_user()

    results = await asyncio.gather(
        _attempt(session_factory, AdmissionLocks(), None, user.id, event.id),
        _attempt(session_factory, AdmissionLocks(), None, user.id, event.id),
        return_exceptions=True,
    )

    assert sorted(type(r).__name__ for r in results) == [
        "DuplicateRegistrationError",
        "Registration",
    ]
    assert await _count(session_factory, event.id) == 1

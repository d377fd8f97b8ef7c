"""Demo data for local development.

Creates an organizer, a regular user and two events so a fresh dev server
has something to click on. Idempotent: does nothing once the demo organizer
exists. Never runs in production.
"""

from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.db.models import ROLE_ORGANIZER, ROLE_USER, Event
from eventhub.services.user_service import UserService

logger = structlog.get_logger()

DEMO_PASSWORD = "password123"

DEMO_EVENTS = [
    {
        "title": "Tech Conference 2024",
        "description": "Annual tech gathering",
        "date": datetime(2024, 12, 1, tzinfo=timezone.utc),
        "location": "San Francisco",
        "max_participants": 100,
    },
    {
        "title": "Local Meetup",
        "description": "Weekly developer meetup",
        "date": datetime(2024, 10, 15, tzinfo=timezone.utc),
        "location": "Community Center",
        "max_participants": 20,
    },
]


async def seed_demo_data(db: AsyncSession) -> bool:
    """Insert demo accounts and events. Returns False if already seeded."""
    users = UserService(db)
    if await users.get_by_username("organizer"):
        return False

    organizer = await users.create_user("organizer", DEMO_PASSWORD, ROLE_ORGANIZER)
    await users.create_user("user", DEMO_PASSWORD, ROLE_USER)

    for fields in DEMO_EVENTS:
        db.add(Event(organizer_id=organizer.id, **fields))
    await db.commit()

    logger.info("seed.completed", organizer_id=organizer.id, events=len(DEMO_EVENTS))
    return True

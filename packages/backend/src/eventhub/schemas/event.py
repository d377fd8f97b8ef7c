"""Pydantic schemas for events and registrations.

JSON on the wire is camelCase (maxParticipants, registrationCount, ...);
Python code uses snake_case. Requests accept either spelling.
"""

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

_CAMEL = {
    "from_attributes": True,
    "populate_by_name": True,
    "alias_generator": to_camel,
}


# ─── Events ─────────────────────────────────────────────

class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    date: datetime
    location: str = Field(..., min_length=1, max_length=200)
    max_participants: int = Field(..., gt=0)

    model_config = _CAMEL


class EventRead(BaseModel):
    id: int
    organizer_id: int
    title: str
    description: str
    date: datetime
    location: str
    max_participants: int
    created_at: datetime

    model_config = _CAMEL


class EventWithStatus(EventRead):
    """Event plus live numbers, computed at read time."""
    registration_count: int
    is_registered: bool = False


# ─── Registrations ──────────────────────────────────────

class RegistrationRead(BaseModel):
    id: int
    user_id: int
    event_id: int
    created_at: datetime

    model_config = _CAMEL

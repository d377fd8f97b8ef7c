"""Notification message types.

Centralizing message types as constants prevents typos and makes it easy to
discover everything the server can push over the WebSocket.
"""

from typing import Any

UPDATE_REGISTRATIONS = "UPDATE_REGISTRATIONS"
PING = "ping"
PONG = "pong"


def registrations_changed(event_id: int) -> dict[str, Any]:
    """Tell clients that registration counts for an event changed."""
    return {"type": UPDATE_REGISTRATIONS, "eventId": event_id}

"""EventHub — event registration platform.

Organizers publish events with a capacity limit, attendees register until
the event is full, and every connected client is told when counts change.
"""

__version__ = "0.1.0"

"""Per-event admission locks.

Admission decisions for one event must not interleave: two requests racing
for the last seat would both see a free slot. Every admission for event E
runs while holding E's lock; different events never wait on each other.

The lock table only holds entries for events somebody is currently
admitting to, so it does not grow with the number of events ever seen.
This serializes within one process; the row lock taken by
RegistrationService covers multiple processes.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class AdmissionLocks:
    """A mutex per event id, created on demand and dropped when idle."""

    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, event_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(event_id, asyncio.Lock())
        self._users[event_id] = self._users.get(event_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[event_id] -= 1
            if self._users[event_id] == 0:
                del self._users[event_id]
                del self._locks[event_id]

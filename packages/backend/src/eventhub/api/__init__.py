"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Authentication is per-route rather than per-router: browsing events is
public, while creating, deleting and registering need a session.
"""

from fastapi import APIRouter

from eventhub.api.auth import router as auth_router
from eventhub.api.events import router as events_router
from eventhub.api.health import router as health_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(events_router, tags=["events", "registrations"])

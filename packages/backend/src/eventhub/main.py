"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The app owns its
real-time state explicitly on app.state:

- connections      — ConnectionRegistry of open WebSockets
- publisher        — ChangePublisher (Redis relay or local fan-out)
- admission_locks  — per-event locks used by RegistrationService

They are created with the app, not in the lifespan, so test clients that
skip lifespan events still get a working app. Lifespan handles the
external resources: schema, demo data, Redis, engine disposal.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventhub import __version__
from eventhub.api import api_router
from eventhub.api.errors import install_error_handlers
from eventhub.config import settings
from eventhub.realtime.pubsub import ChangePublisher
from eventhub.realtime.registry import ConnectionRegistry
from eventhub.services.admission import AdmissionLocks

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    from eventhub.db.engine import async_session_factory, create_schema, engine

    logger.info(
        "eventhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    if settings.create_schema_on_startup:
        await create_schema(engine)

    if settings.seed_demo_data and settings.environment == "development":
        from eventhub.services.seed import seed_demo_data

        async with async_session_factory() as db:
            await seed_demo_data(db)

    publisher: ChangePublisher = app.state.publisher
    try:
        if await publisher.start():
            logger.info("eventhub.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("eventhub.redis_unavailable", error=str(e))
        # Redis is optional; notifications stay within this process

    yield

    logger.info("eventhub.shutdown")
    await publisher.stop()
    await app.state.connections.close_all()
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="EventHub",
        description="Event registration with live capacity tracking",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Real-time state, owned by this app instance ───────────
    connections = ConnectionRegistry(send_timeout=settings.ws_send_timeout_seconds)
    app.state.connections = connections
    app.state.publisher = ChangePublisher(connections, redis_url=settings.redis_url)
    app.state.admission_locks = AdmissionLocks()

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler

    from eventhub.middleware.rate_limit import RateLimitMiddleware
    from eventhub.middleware.request_id import RequestIdMiddleware
    from eventhub.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    install_error_handlers(app)

    # Mount API routes
    app.include_router(api_router)

    # Mount WebSocket route (registration change notifications)
    from eventhub.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: eventhub.main:app)
app = create_app()

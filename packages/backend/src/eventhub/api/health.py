"""Health check endpoint.

Verifies the server is running and its dependencies are reachable:
the database always, Redis only when the relay is connected.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from eventhub import __version__
from eventhub.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    publisher = request.app.state.publisher
    redis = publisher.redis
    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["redis"] = "error: relay resubscribing" if publisher.relay_down else "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"

    checks["websocket_connections"] = len(request.app.state.connections)

    status = "healthy" if all(
        checks[k] in ("ok", "disabled") for k in ("database", "redis")
    ) else "degraded"

    return {"status": status, **checks}

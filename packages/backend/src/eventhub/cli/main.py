"""EventHub CLI — run the server, prepare the database, inspect events.

Usage:
    eventhub serve                       # Run the API + WebSocket server
    eventhub init-db                     # Create tables
    eventhub seed                        # Insert demo accounts and events
    eventhub events                      # List events from a running server
    eventhub events --json               # ...as raw JSON
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("EVENTHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the EventHub server."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _capacity_color(count: int, capacity: int) -> str:
    if count >= capacity:
        return "red"
    if count >= capacity * 0.8:
        return "yellow"
    return "green"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="eventhub")
def main():
    """EventHub — event registration with live capacity tracking."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: EVENTHUB_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: EVENTHUB_PORT)")
@click.option("--reload", is_flag=True, help="Restart on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP + WebSocket server."""
    import uvicorn

    from eventhub.config import settings

    uvicorn.run(
        "eventhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create all database tables."""
    _run(_init_db_impl())
    click.secho("Schema created.", fg="green")


async def _init_db_impl():
    from eventhub.db.engine import create_schema, engine

    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


@main.command()
def seed():
    """Insert demo accounts (organizer/user, password123) and events."""
    created = _run(_seed_impl())
    if created:
        click.secho("Demo data inserted.", fg="green")
    else:
        click.echo("Demo data already present.")


async def _seed_impl() -> bool:
    from eventhub.db.engine import async_session_factory, create_schema, engine
    from eventhub.services.seed import seed_demo_data

    try:
        await create_schema(engine)
        async with async_session_factory() as db:
            return await seed_demo_data(db)
    finally:
        await engine.dispose()


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def events(as_json: bool):
    """List events with their live registration counts."""
    _run(_events_impl(as_json))


async def _events_impl(as_json: bool):
    async with _client() as c:
        try:
            r = await c.get("/api/events")
            r.raise_for_status()
        except httpx.HTTPError as e:
            click.secho(f"Could not reach {_api_url()}: {e}", fg="red", err=True)
            sys.exit(1)
        items = r.json()

    if as_json:
        click.echo(json.dumps(items, indent=2, default=str))
        return

    if not items:
        click.echo("No events.")
        return

    rows = []
    for e in items:
        seats = f"{e['registrationCount']}/{e['maxParticipants']}"
        rows.append({
            "id": e["id"],
            "title": e["title"],
            "date": e["date"][:10],
            "location": e["location"],
            "seats": click.style(
                seats,
                fg=_capacity_color(e["registrationCount"], e["maxParticipants"]),
            ),
        })

    click.secho(f"Events ({len(items)}):", bold=True)
    _print_table(rows, [
        ("ID", "id", 5),
        ("TITLE", "title", 30),
        ("DATE", "date", 10),
        ("LOCATION", "location", 20),
        ("SEATS", "seats", 20),
    ])


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()

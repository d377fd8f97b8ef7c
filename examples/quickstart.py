#!/usr/bin/env python3
"""
EventHub Quickstart — the last-seat race in one script.

Creates an organizer → one-seat event → two attendees who register at the
same moment. Exactly one gets the seat; the other is told the event is full.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import asyncio
import sys
import uuid

import httpx

BASE = "http://localhost:8000/api"
PASSWORD = "demo-password-123"


async def account(username: str, role: str = "user") -> httpx.AsyncClient:
    """Register a fresh account; the returned client carries its session cookie."""
    client = httpx.AsyncClient(base_url=BASE, timeout=10)
    resp = await client.post("/auth/register", json={
        "username": username,
        "password": PASSWORD,
        "role": role,
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    return client


async def main():
    run_id = uuid.uuid4().hex[:6]

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        health = httpx.get(f"{BASE}/health", timeout=5).json()
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  eventhub serve")
        sys.exit(1)
    print(f"  Database: {health['database']}")
    print(f"  Redis:    {health['redis']}")

    # ── Organizer creates a one-seat event ────────────────────────
    print("\n1. Creating organizer and event...")
    org = await account(f"org-{run_id}", role="organizer")
    resp = await org.post("/events", json={
        "title": "Tech Talk",
        "description": "One seat only",
        "date": "2030-01-15T18:00:00Z",
        "location": "Room 101",
        "maxParticipants": 1,
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    event = resp.json()
    print(f"   Event #{event['id']}: {event['title']} (capacity {event['maxParticipants']})")

    # ── Two attendees race for the seat ───────────────────────────
    print("\n2. alice and bob register at the same time...")
    alice = await account(f"alice-{run_id}")
    bob = await account(f"bob-{run_id}")
    path = f"/events/{event['id']}/registrations"
    results = await asyncio.gather(alice.post(path), bob.post(path))
    for name, resp in zip(("alice", "bob"), results):
        body = resp.json()
        outcome = "registered" if resp.status_code == 201 else body["message"]
        print(f"   {name}: {resp.status_code} {outcome}")

    # ── Read model reflects exactly one registration ──────────────
    resp = await org.get(f"/events/{event['id']}")
    detail = resp.json()
    print(f"\n3. Seats taken: {detail['registrationCount']}/{detail['maxParticipants']}")

    # ── Clean up ──────────────────────────────────────────────────
    resp = await org.delete(f"/events/{event['id']}")
    print(f"\n4. Event deleted: {resp.status_code == 204}")

    for client in (org, alice, bob):
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())

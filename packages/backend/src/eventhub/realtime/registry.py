"""Connection registry — the set of WebSockets open in this process.

The registry is created by the app factory and stored on app.state, so
whatever needs to fan out gets it handed over explicitly. It holds no
history: a client that reconnects simply re-reads the event list.
"""

import asyncio
import contextlib
import json
from typing import Any

import structlog
from starlette.websockets import WebSocket, WebSocketState

logger = structlog.get_logger()


class ConnectionRegistry:
    """In-memory fan-out to every connected viewer."""

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self._connections: set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, conn: WebSocket) -> bool:
        return conn in self._connections

    def register(self, conn: WebSocket) -> None:
        self._connections.add(conn)
        logger.info("realtime.connected", connections=len(self._connections))

    def unregister(self, conn: WebSocket) -> None:
        if conn in self._connections:
            self._connections.discard(conn)
            logger.info("realtime.disconnected", connections=len(self._connections))

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send a message to every connection. Returns how many got it.

        Sends run concurrently, each bounded by send_timeout. A connection
        that errors or stalls is dropped and closed; the rest still receive
        the message.
        """
        if not self._connections:
            return 0

        payload = json.dumps(message)
        targets = list(self._connections)
        results = await asyncio.gather(
            *(self._send(conn, payload) for conn in targets)
        )
        delivered = sum(results)
        logger.debug(
            "realtime.broadcast",
            type=message.get("type"),
            delivered=delivered,
            dropped=len(targets) - delivered,
        )
        return delivered

    async def close_all(self) -> None:
        """Close every connection (server shutdown)."""
        targets = list(self._connections)
        self._connections.clear()
        for conn in targets:
            await self._close(conn, code=1001)

    async def _send(self, conn: WebSocket, payload: str) -> bool:
        try:
            await asyncio.wait_for(conn.send_text(payload), timeout=self.send_timeout)
            return True
        except Exception as e:
            # One broken client must not affect the others
            logger.warning("realtime.send_failed", error=repr(e))
            self.unregister(conn)
            await self._close(conn)
            return False

    async def _close(self, conn: WebSocket, code: int = 1011) -> None:
        if conn.application_state == WebSocketState.DISCONNECTED:
            return
        with contextlib.suppress(Exception):
            await conn.close(code=code)

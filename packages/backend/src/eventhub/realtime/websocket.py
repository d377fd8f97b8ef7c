"""WebSocket endpoint — registration change notifications for viewers.

Each browser tab connects to /ws. The handler registers the socket with the
app's ConnectionRegistry and then just listens: the server pushes
{"type": "UPDATE_REGISTRATIONS", "eventId": n} whenever counts change, and
answers {"type": "ping"} with {"type": "pong"}. Anything else, binary
frames included, is ignored.

Viewing is public, so no authentication is required to connect.
"""

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from eventhub.realtime.messages import PING, PONG
from eventhub.realtime.registry import ConnectionRegistry

router = APIRouter()


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    registry: ConnectionRegistry = websocket.app.state.connections

    await websocket.accept()
    registry.register(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("text")
            if data is None:
                continue  # binary frame
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == PING:
                await websocket.send_text(json.dumps({"type": PONG}))
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(websocket)

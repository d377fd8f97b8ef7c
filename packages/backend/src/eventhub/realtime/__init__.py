"""Real-time infrastructure — WebSocket fan-out, optionally relayed via Redis.

Notifications flow:
1. A service commits a write and calls ChangePublisher.publish()
2. With Redis: PUBLISH → every server process's relay → its local registry
   Without Redis: straight to this process's registry
3. ConnectionRegistry.broadcast() → every open WebSocket

Messages only say *what* changed; clients re-fetch the read model for the
actual numbers. A lost notification is harmless.
"""

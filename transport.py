import asyncio
import json
from typing import Any, Dict

from fastapi import WebSocket

from logging_config import get_logger

logger = get_logger(__name__)


class WebSocketTransport:
    """Outbound side of the WebSocket boundary.

    ``deliver`` only enqueues a frame on the recipient's outbox, so relay
    handlers never await a send. One writer task per connection drains
    its outbox onto the socket. A full outbox drops new frames.
    """

    def __init__(self, outbox_size: int = 0):
        # 0 means unbounded
        self.outbox_size = outbox_size
        # Format: {connection_id: queue of JSON text frames}
        self._outboxes: Dict[str, asyncio.Queue] = {}

    def register(self, connection_id: str) -> asyncio.Queue:
        outbox = asyncio.Queue(maxsize=self.outbox_size)
        self._outboxes[connection_id] = outbox
        logger.debug(f"Registered outbox for {connection_id} ({len(self._outboxes)} open)")
        return outbox

    def unregister(self, connection_id: str):
        if self._outboxes.pop(connection_id, None) is not None:
            logger.debug(f"Removed outbox for {connection_id} ({len(self._outboxes)} open)")

    def deliver(self, connection_id: str, event: str, data: Dict[str, Any]):
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            # Connection already gone: drop silently
            logger.debug(f"Dropping {event} for unknown connection {connection_id}")
            return
        try:
            outbox.put_nowait(json.dumps({"type": event, "data": data}))
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for {connection_id}, dropping {event}")

    async def pump(self, connection_id: str, websocket: WebSocket, outbox: asyncio.Queue):
        """Write queued frames to the socket until cancelled or the socket fails."""
        try:
            while True:
                frame = await outbox.get()
                await websocket.send_text(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Error sending to connection {connection_id}: {e}")
            self.unregister(connection_id)

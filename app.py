import asyncio
import sys
import threading
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

import constants
from backend import ConnectionRegistry, RoomStore
from logging_config import get_logger, setup_logging
from relay import SignalingRelay
from routers.rooms import rooms_router
from routers.system import system_router
from sweeper import LifecycleSweeper
from transport import WebSocketTransport

# Setup logging
setup_logging(log_level=constants.LOG_LEVEL, log_file=constants.LOG_FILE)
logger = get_logger(__name__)


def install_exception_hooks(loop: asyncio.AbstractEventLoop):
    """Log uncaught exceptions and unretrieved task exceptions. Nothing is restarted."""

    def log_uncaught(exc_type, exc, tb):
        logger.critical(f"Uncaught exception: {exc}", exc_info=(exc_type, exc, tb))

    def log_thread_uncaught(args):
        logger.critical(f"Uncaught exception in thread {args.thread.name if args.thread else '?'}: {args.exc_value}",
                        exc_info=(args.exc_type, args.exc_value, args.exc_traceback))

    def log_loop_exception(loop, context):
        exception = context.get("exception")
        logger.error(f"Unhandled exception in event loop: {context.get('message')}",
                     exc_info=(type(exception), exception, exception.__traceback__) if exception else None)

    sys.excepthook = log_uncaught
    threading.excepthook = log_thread_uncaught
    loop.set_exception_handler(log_loop_exception)


async def websocket_endpoint(websocket: WebSocket):
    """Boundary adapter: one WebSocket per peer, JSON frames ``{"type", "data"}`` both ways."""
    relay: SignalingRelay = websocket.app.state.relay
    transport: WebSocketTransport = websocket.app.state.transport

    await websocket.accept()
    connection_id = str(uuid.uuid4())
    logger.info(f"WebSocket connection accepted: {connection_id}")

    outbox = transport.register(connection_id)
    writer = asyncio.create_task(transport.pump(connection_id, websocket, outbox))
    relay.connect(connection_id)

    reason = None
    message_count = 0
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection_id}")
            data = message.get("text")
            relay.handle_message(connection_id, data if data is not None else message.get("bytes"))
    except WebSocketDisconnect as e:
        reason = e.reason or f"closed with code {e.code}"
        logger.info(f"WebSocket disconnected for connection {connection_id}: {reason}")
    except Exception as e:
        reason = "transport error"
        logger.error(f"Error receiving from connection {connection_id}: {e}", exc_info=True)
    finally:
        transport.unregister(connection_id)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        relay.disconnect(connection_id, reason)


def create_app(max_capacity: Optional[int] = None,
               sweep_interval: Optional[float] = None,
               stale_after: Optional[float] = None) -> FastAPI:
    """Build the application with its own store, registry, relay and sweeper.

    Arguments default to the values in ``constants``.
    """
    store = RoomStore(max_capacity=constants.MAX_ROOM_CAPACITY if max_capacity is None else max_capacity)
    registry = ConnectionRegistry()
    transport = WebSocketTransport(outbox_size=constants.OUTBOX_MAX_FRAMES)
    relay = SignalingRelay(store, registry, transport)
    sweeper = LifecycleSweeper(
        store,
        interval=constants.SWEEP_INTERVAL_SECONDS if sweep_interval is None else sweep_interval,
        stale_after=constants.STALE_ROOM_SECONDS if stale_after is None else stale_after,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        install_exception_hooks(asyncio.get_running_loop())
        app.state.started_at = time.monotonic()
        sweeper.start()
        logger.info("Signaling relay started")
        try:
            yield
        finally:
            # the sweeper must be gone before the store is torn down
            await sweeper.stop()
            store.clear()
            registry.clear()
            logger.info("Signaling relay stopped")

    app = FastAPI(title="WebRTC Signaling Server", lifespan=lifespan)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.relay = relay
    app.state.transport = transport
    app.state.sweeper = sweeper
    app.state.started_at = time.monotonic()

    app.include_router(system_router)
    app.include_router(rooms_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    logger.info("FastAPI application initialized")
    return app


app = create_app()

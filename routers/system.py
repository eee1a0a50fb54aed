import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

import constants
from logging_config import get_logger
from schemas.rooms import HealthResponse, IceServer, IceServersResponse

logger = get_logger(__name__)

system_router = APIRouter(tags=["system"])


@system_router.get("/", response_model=HealthResponse)
async def health(request: Request):
    relay = request.app.state.relay
    uptime = int(time.monotonic() - request.app.state.started_at)
    return HealthResponse(
        message="WebRTC Signaling Server",
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        connected_sockets=relay.registry.count(),
        active_rooms=relay.store.room_count(),
        uptime=f"{uptime} seconds",
    )


@system_router.get("/api/ice-servers", response_model=IceServersResponse, response_model_exclude_none=True)
async def ice_servers():
    """STUN servers from configuration, plus the TURN server when its credentials are all set."""
    servers = [IceServer(urls=url) for url in constants.STUN_SERVERS]
    if constants.TURN_SERVER_URL and constants.TURN_USERNAME and constants.TURN_CREDENTIAL:
        servers.append(IceServer(
            urls=constants.TURN_SERVER_URL,
            username=constants.TURN_USERNAME,
            credential=constants.TURN_CREDENTIAL,
        ))
    else:
        logger.debug("TURN server not configured, returning STUN servers only")
    return IceServersResponse(ice_servers=servers)

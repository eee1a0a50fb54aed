from fastapi import APIRouter, Request

from backend import isoformat
from logging_config import get_logger
from schemas.rooms import RoomInfoResponse

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/api/room", tags=["rooms"])


@rooms_router.get("/{room_id}", response_model=RoomInfoResponse)
async def get_room_info(room_id: str, request: Request):
    """
    Current members of a room. An unknown room is reported as empty, not as an error.

    Returns:
    - roomId: the requested identifier
    - clientCount: number of members
    - clients: member connection ids, in join order
    - members: member records (connectionId, metadata, joinedAt)
    - maxCapacity: enforced member limit, null when unlimited
    - createdAt: room creation time, null for an unknown room
    """
    store = request.app.state.relay.store
    room = store.get_room(room_id)
    members = store.get_members(room_id)
    logger.debug(f"Room info for {room_id}: {len(members)} members")
    return RoomInfoResponse(
        room_id=room_id,
        client_count=len(members),
        clients=[member["connectionId"] for member in members],
        members=members,
        max_capacity=store.max_capacity or None,
        created_at=isoformat(room.created_at) if room else None,
    )

from typing import Any, Dict, List, Optional

from schemas.base import CamelModel


class HealthResponse(CamelModel):
    message: str
    status: str
    timestamp: str
    connected_sockets: int
    active_rooms: int
    uptime: str


class IceServer(CamelModel):
    urls: str
    username: Optional[str] = None
    credential: Optional[str] = None


class IceServersResponse(CamelModel):
    ice_servers: List[IceServer]


class RoomInfoResponse(CamelModel):
    room_id: str
    client_count: int
    clients: List[str]
    members: List[Dict[str, Any]]
    max_capacity: Optional[int] = None
    created_at: Optional[str] = None

from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from schemas.base import CamelModel

Payload = Union[Dict[str, Any], str]


# Inbound events

class JoinEvent(CamelModel):
    room_id: str = Field(min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class LeaveEvent(CamelModel):
    room_id: str = Field(min_length=1)


class SessionDescriptionEvent(CamelModel):
    """offer / answer"""
    room_id: str = Field(min_length=1)
    sdp: Payload
    sender: str = Field(min_length=1)
    target: Optional[str] = None


class IceCandidateEvent(CamelModel):
    room_id: str = Field(min_length=1)
    candidate: Payload
    sender: str = Field(min_length=1)
    target: Optional[str] = None


class ChatMessageEvent(CamelModel):
    room_id: str = Field(min_length=1)
    message: str
    sender: str = Field(min_length=1)


class CallUserEvent(CamelModel):
    room_id: str = Field(min_length=1)
    target_socket_id: str = Field(min_length=1)
    sender: str = Field(min_length=1)


class CallResponseEvent(CamelModel):
    """call-accepted / call-rejected; the room is informational only."""
    room_id: Optional[str] = None
    target_socket_id: str = Field(min_length=1)
    sender: str = Field(min_length=1)


class EndCallEvent(CamelModel):
    room_id: str = Field(min_length=1)
    sender: str = Field(min_length=1)


# Outbound events

class RoomUpdate(CamelModel):
    room_id: str
    members: List[Dict[str, Any]]
    action: str
    affected_connection: str


class MembershipAck(CamelModel):
    """joined / left"""
    room_id: str
    connection_id: str
    members: List[Dict[str, Any]]


class SignalRelay(CamelModel):
    """offer / answer / ice-candidate as delivered to peers"""
    payload: Payload
    sender: str
    room_id: str


class ChatBroadcast(CamelModel):
    message: str
    sender: str
    room_id: str
    time: int
    timestamp: str
    id: str


class CallSignal(CamelModel):
    actor: str
    actor_connection_id: str
    room_id: Optional[str] = None
    timestamp: str


class UserDisconnected(CamelModel):
    disconnected_connection: str
    remaining_members: List[Dict[str, Any]]
    reason: Optional[str] = None


class ErrorNotice(CamelModel):
    message: str


class Pong(CamelModel):
    timestamp: str

import json
import time
import uuid
from typing import Any, Callable, Dict, Optional, Protocol, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

import events
from backend import ConnectionRegistry, RoomStore, isoformat
from errors import MembershipError, RelayError, ValidationFailed
from logging_config import get_logger
from schemas.base import CamelModel
from schemas.events import (
    CallResponseEvent,
    CallSignal,
    CallUserEvent,
    ChatBroadcast,
    ChatMessageEvent,
    EndCallEvent,
    ErrorNotice,
    IceCandidateEvent,
    JoinEvent,
    LeaveEvent,
    MembershipAck,
    Pong,
    RoomUpdate,
    SessionDescriptionEvent,
    SignalRelay,
    UserDisconnected,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class Transport(Protocol):
    def deliver(self, connection_id: str, event: str, data: Dict[str, Any]) -> None:
        ...


class SignalingRelay:
    """Routes inbound signaling events between connections.

    Handlers are synchronous: each event is validated, applied to the
    room store and connection registry, and turned into outbound delivery
    requests before the next event is looked at. Delivery itself is the
    transport's business and is never awaited here.
    """

    def __init__(self, store: RoomStore, registry: ConnectionRegistry, transport: Transport,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.registry = registry
        self.transport = transport
        self.clock = clock
        self._handlers = {
            events.JOIN: self.on_join,
            events.LEAVE: self.on_leave,
            events.OFFER: self.on_negotiation,
            events.ANSWER: self.on_negotiation,
            events.ICE_CANDIDATE: self.on_negotiation,
            events.CHAT_MESSAGE: self.on_chat_message,
            events.CALL_USER: self.on_call_user,
            events.CALL_ACCEPTED: self.on_call_response,
            events.CALL_REJECTED: self.on_call_response,
            events.END_CALL: self.on_end_call,
            events.PING: self.on_ping,
        }

    # Connection lifecycle

    def connect(self, connection_id: str):
        self.registry.connect(connection_id)
        logger.info(f"Connection {connection_id} registered")

    def disconnect(self, connection_id: str, reason: Optional[str] = None):
        """Reconcile room membership for a lost connection.

        Safe to call for a connection that already left its room, or that
        was never seen at all.
        """
        logger.info(f"Connection {connection_id} disconnected (reason: {reason})")
        try:
            room_id = self.registry.room_of(connection_id)
            if room_id is None:
                return
            remaining = self.store.leave(connection_id, room_id)
            if remaining is None:
                logger.debug(f"Room {room_id} is gone after {connection_id} disconnected")
                return
            self._broadcast(room_id, events.ROOM_UPDATE, RoomUpdate(
                room_id=room_id,
                members=remaining,
                action=events.ACTION_USER_DISCONNECTED,
                affected_connection=connection_id,
            ))
            self._broadcast(room_id, events.USER_DISCONNECTED, UserDisconnected(
                disconnected_connection=connection_id,
                remaining_members=remaining,
                reason=reason,
            ))
        except Exception as e:
            logger.error(f"Error reconciling disconnect of {connection_id}: {e}", exc_info=True)
        finally:
            self.registry.remove(connection_id)

    # Dispatch

    def handle_message(self, connection_id: str, raw: Union[str, bytes]):
        """Decode a ``{"type": ..., "data": ...}`` frame and dispatch it.

        Binary frames are accepted if they hold UTF-8 JSON.
        """
        # ValueError covers JSONDecodeError and UnicodeDecodeError; RecursionError comes from deep nesting
        try:
            frame = json.loads(raw)
        except (ValueError, RecursionError, TypeError):
            frame = None
        if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
            logger.warning(f"Malformed frame from {connection_id}")
            self._send_error(connection_id, "Invalid message format")
            return
        self.handle(connection_id, frame["type"], frame.get("data"))

    def handle(self, connection_id: str, event: str, data: Any = None):
        self.registry.connect(connection_id)
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event '{event}' from {connection_id}")
            self._send_error(connection_id, f"Unknown event: {event}")
            return
        try:
            handler(connection_id, event, data)
        except RelayError as e:
            logger.warning(f"Rejected {event} from {connection_id}: {e.message}")
            self._send_error(connection_id, e.message)
        except Exception as e:
            logger.error(f"Error handling {event} from {connection_id}: {e}", exc_info=True)
            self._send_error(connection_id, "Internal server error")

    # Membership

    def on_join(self, connection_id: str, event: str, data: Any):
        if isinstance(data, str):
            data = {"roomId": data}
        request = self._validate(JoinEvent, event, data)
        room_id = request.room_id

        members = self.store.join(connection_id, room_id, request.metadata)
        previous = self.registry.room_of(connection_id)
        if previous is not None and previous != room_id:
            self._leave_room(connection_id, previous)
        self.registry.assign(connection_id, room_id, request.metadata)
        logger.info(f"{connection_id} joined {room_id} ({len(members)} members)")

        self._broadcast(room_id, events.ROOM_UPDATE, RoomUpdate(
            room_id=room_id,
            members=members,
            action=events.ACTION_USER_JOINED,
            affected_connection=connection_id,
        ))
        self._send(connection_id, events.JOINED, MembershipAck(
            room_id=room_id, connection_id=connection_id, members=members,
        ))

    def on_leave(self, connection_id: str, event: str, data: Any):
        if isinstance(data, str):
            data = {"roomId": data}
        request = self._validate(LeaveEvent, event, data)
        self._leave_room(connection_id, request.room_id)

    def _leave_room(self, connection_id: str, room_id: str):
        was_member = self.store.has_member(room_id, connection_id)
        remaining = self.store.leave(connection_id, room_id)
        self.registry.release(connection_id, room_id)
        logger.info(f"{connection_id} left {room_id} ({len(remaining or [])} remaining)")
        # members are only told about connections that were actually in the room
        if was_member and remaining is not None:
            self._broadcast(room_id, events.ROOM_UPDATE, RoomUpdate(
                room_id=room_id,
                members=remaining,
                action=events.ACTION_USER_LEFT,
                affected_connection=connection_id,
            ))
        self._send(connection_id, events.LEFT, MembershipAck(
            room_id=room_id, connection_id=connection_id, members=remaining or [],
        ))

    # Negotiation and chat

    def on_negotiation(self, connection_id: str, event: str, data: Any):
        if event == events.ICE_CANDIDATE:
            request = self._validate(IceCandidateEvent, event, data)
            payload = request.candidate
        else:
            request = self._validate(SessionDescriptionEvent, event, data)
            payload = request.sdp

        body = SignalRelay(payload=payload, sender=request.sender, room_id=request.room_id)
        if request.target:
            logger.debug(f"{event} from {request.sender} to {request.target} in {request.room_id}")
            self._send(request.target, event, body)
        else:
            logger.debug(f"{event} from {request.sender} broadcast in {request.room_id}")
            self._broadcast(request.room_id, event, body, exclude=connection_id)

    def on_chat_message(self, connection_id: str, event: str, data: Any):
        request = self._validate(ChatMessageEvent, event, data)
        now = self.clock()
        # blank messages are delivered as-is after trimming
        body = ChatBroadcast(
            message=request.message.strip(),
            sender=request.sender,
            room_id=request.room_id,
            time=int(now * 1000),
            timestamp=isoformat(now),
            id=uuid.uuid4().hex,
        )
        logger.debug(f"Chat message from {request.sender} in {request.room_id}")
        self._broadcast(request.room_id, events.CHAT_MESSAGE, body)

    # Calls. Stateless: each signal is relayed once, in whatever order it arrives.

    def on_call_user(self, connection_id: str, event: str, data: Any):
        request = self._validate(CallUserEvent, event, data)
        if not self.store.has_member(request.room_id, request.target_socket_id):
            raise MembershipError(f"User {request.target_socket_id} is not in room {request.room_id}")
        logger.info(f"Call from {request.sender} to {request.target_socket_id} in {request.room_id}")
        self._send(request.target_socket_id, events.INCOMING_CALL, self._call_signal(connection_id, request))

    def on_call_response(self, connection_id: str, event: str, data: Any):
        request = self._validate(CallResponseEvent, event, data)
        logger.info(f"{event} by {request.sender} for {request.target_socket_id}")
        self._send(request.target_socket_id, event, self._call_signal(connection_id, request))

    def on_end_call(self, connection_id: str, event: str, data: Any):
        request = self._validate(EndCallEvent, event, data)
        logger.info(f"Call ended by {request.sender} in {request.room_id}")
        self._broadcast(request.room_id, events.CALL_ENDED, self._call_signal(connection_id, request))

    def _call_signal(self, connection_id: str, request) -> CallSignal:
        return CallSignal(
            actor=request.sender,
            actor_connection_id=connection_id,
            room_id=request.room_id,
            timestamp=isoformat(self.clock()),
        )

    def on_ping(self, connection_id: str, event: str, data: Any):
        self._send(connection_id, events.PONG, Pong(timestamp=isoformat(self.clock())))

    # Helpers

    def _validate(self, model: Type[ModelT], event: str, data: Any) -> ModelT:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise RelayError(f"Invalid payload for {event}")
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            fields = []
            missing = True
            for error in exc.errors():
                name = str(error["loc"][0]) if error["loc"] else "payload"
                if name not in fields:
                    fields.append(name)
                if error["type"] not in ("missing", "string_too_short") and error.get("input") is not None:
                    missing = False
            raise ValidationFailed(event, fields, missing=missing) from exc

    def _send(self, connection_id: str, event: str, body) -> bool:
        data = body.to_wire() if isinstance(body, CamelModel) else body
        try:
            self.transport.deliver(connection_id, event, data)
            return True
        except Exception as e:
            logger.warning(f"Failed to deliver {event} to {connection_id}: {e}")
            return False

    def _broadcast(self, room_id: str, event: str, body, exclude: Optional[str] = None) -> int:
        data = body.to_wire() if isinstance(body, CamelModel) else body
        delivered = 0
        for member_id in self.store.member_ids(room_id):
            if member_id == exclude:
                continue
            if self._send(member_id, event, data):
                delivered += 1
        logger.debug(f"Broadcast {event} to {delivered} connection(s) in {room_id}")
        return delivered

    def _send_error(self, connection_id: str, message: str):
        self._send(connection_id, events.ERROR, ErrorNotice(message=message))

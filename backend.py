import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from errors import RoomFullError
from logging_config import get_logger

logger = get_logger(__name__)


def isoformat(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass
class Member:
    connection_id: str
    metadata: Optional[Dict[str, Any]]
    joined_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connectionId": self.connection_id,
            "metadata": self.metadata,
            "joinedAt": isoformat(self.joined_at),
        }


@dataclass
class Room:
    room_id: str
    created_at: float
    # insertion ordered: join order is the order peers see in member lists
    members: Dict[str, Member] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.members

    def member_list(self) -> List[Dict[str, Any]]:
        return [member.to_dict() for member in self.members.values()]


@dataclass
class Connection:
    connection_id: str
    connected_at: float
    metadata: Optional[Dict[str, Any]] = None
    room_id: Optional[str] = None
    joined_at: Optional[float] = None


class RoomStore:
    """In-memory room membership.

    Every mutation is synchronous; callers on a single event loop get
    atomic join/leave without locking.
    """

    def __init__(self, max_capacity: int = 0, clock: Callable[[], float] = time.time):
        self.max_capacity = max_capacity
        self.clock = clock
        self._rooms: Dict[str, Room] = {}
        logger.info(f"Initializing RoomStore (max_capacity={max_capacity or 'unlimited'})")

    def ensure_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(room_id=room_id, created_at=self.clock())
            self._rooms[room_id] = room
            logger.info(f"Created room {room_id}")
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def join(self, connection_id: str, room_id: str, metadata: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Add a connection to a room, creating the room on first join.

        Re-joining is idempotent: no duplicate record is created, and the
        stored metadata is refreshed when new metadata is supplied.
        """
        room = self._rooms.get(room_id)
        existing = room.members.get(connection_id) if room else None
        if existing is not None:
            if metadata is not None:
                existing.metadata = metadata
            logger.debug(f"Connection {connection_id} already in room {room_id}")
            return room.member_list()

        if room and self.max_capacity > 0 and len(room.members) >= self.max_capacity:
            raise RoomFullError(room_id, self.max_capacity)

        room = self.ensure_room(room_id)
        room.members[connection_id] = Member(connection_id=connection_id, metadata=metadata, joined_at=self.clock())
        logger.debug(f"Connection {connection_id} added to room {room_id} ({len(room.members)} members)")
        return room.member_list()

    def leave(self, connection_id: str, room_id: str) -> Optional[List[Dict[str, Any]]]:
        """Remove a connection from a room.

        Returns the remaining members, or None when the room no longer
        exists (it was unknown or this leave emptied it).
        """
        room = self._rooms.get(room_id)
        if room is None:
            logger.debug(f"Leave for unknown room {room_id} by {connection_id}")
            return None

        removed = room.members.pop(connection_id, None)
        if removed is None:
            logger.debug(f"Connection {connection_id} was not a member of room {room_id}")

        if room.is_empty():
            del self._rooms[room_id]
            logger.info(f"Deleted empty room {room_id}")
            return None
        return room.member_list()

    def get_members(self, room_id: str) -> List[Dict[str, Any]]:
        room = self._rooms.get(room_id)
        if room is None:
            return []
        return room.member_list()

    def member_ids(self, room_id: str) -> List[str]:
        room = self._rooms.get(room_id)
        return list(room.members) if room else []

    def has_member(self, room_id: str, connection_id: str) -> bool:
        room = self._rooms.get(room_id)
        return room is not None and connection_id in room.members

    def room_count(self) -> int:
        return len(self._rooms)

    def socket_count(self) -> int:
        return sum(len(room.members) for room in self._rooms.values())

    def purge_stale(self, stale_after: float, now: Optional[float] = None) -> List[str]:
        """Delete rooms that are empty and were created more than ``stale_after`` seconds ago."""
        now = self.clock() if now is None else now
        deleted = []
        for room_id in list(self._rooms):
            room = self._rooms[room_id]
            # emptiness is re-checked here, in the same step as the delete
            if room.is_empty() and now - room.created_at > stale_after:
                del self._rooms[room_id]
                deleted.append(room_id)
        return deleted

    def clear(self):
        logger.debug(f"Clearing RoomStore ({len(self._rooms)} rooms)")
        self._rooms.clear()


class ConnectionRegistry:
    """Live connections and the single room each one currently occupies."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._connections: Dict[str, Connection] = {}

    def connect(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            connection = Connection(connection_id=connection_id, connected_at=self.clock())
            self._connections[connection_id] = connection
            logger.debug(f"Registered connection {connection_id}")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def room_of(self, connection_id: str) -> Optional[str]:
        connection = self._connections.get(connection_id)
        return connection.room_id if connection else None

    def assign(self, connection_id: str, room_id: str, metadata: Optional[Dict[str, Any]] = None) -> Connection:
        connection = self.connect(connection_id)
        if connection.room_id != room_id:
            connection.joined_at = self.clock()
        connection.room_id = room_id
        if metadata is not None:
            connection.metadata = metadata
        return connection

    def release(self, connection_id: str, room_id: str):
        """Clear the connection's room if it is ``room_id``."""
        connection = self._connections.get(connection_id)
        if connection and connection.room_id == room_id:
            connection.room_id = None
            connection.joined_at = None

    def remove(self, connection_id: str) -> Optional[Connection]:
        connection = self._connections.pop(connection_id, None)
        if connection:
            logger.debug(f"Unregistered connection {connection_id}")
        return connection

    def count(self) -> int:
        return len(self._connections)

    def clear(self):
        self._connections.clear()

class RelayError(Exception):
    """Base for failures reported back to the originating connection as an ``error`` event."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(RelayError):
    """Required fields of an inbound event are absent, or present with the wrong type."""

    def __init__(self, event: str, fields: list[str], missing: bool = True):
        self.event = event
        self.fields = fields
        self.missing = missing
        kind = "Missing required" if missing else "Invalid"
        super().__init__(f"{kind} field(s) for {event}: {', '.join(fields)}")


class MembershipError(RelayError):
    """A connection referenced by an event is not a member of the stated room."""


class RoomFullError(RelayError):
    def __init__(self, room_id: str, capacity: int):
        self.room_id = room_id
        self.capacity = capacity
        super().__init__(f"Room {room_id} is full ({capacity}/{capacity})")

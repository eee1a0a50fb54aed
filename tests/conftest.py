import pytest

from backend import ConnectionRegistry, RoomStore
from relay import SignalingRelay


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingTransport:
    """Stands in for the WebSocket adapter; records every delivery request."""

    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)

    def deliver(self, connection_id, event, data):
        if connection_id in self.failing:
            raise ConnectionError(f"{connection_id} is gone")
        self.sent.append((connection_id, event, data))

    def to(self, connection_id, event=None):
        return [data for cid, ev, data in self.sent if cid == connection_id and (event is None or ev == event)]

    def events_for(self, connection_id):
        return [ev for cid, ev, _ in self.sent if cid == connection_id]

    def of(self, event):
        return [(cid, data) for cid, ev, data in self.sent if ev == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return RoomStore(max_capacity=0, clock=clock)


@pytest.fixture
def registry(clock):
    return ConnectionRegistry(clock=clock)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def relay(store, registry, transport, clock):
    return SignalingRelay(store, registry, transport, clock=clock)

import pytest

from backend import ConnectionRegistry, RoomStore
from errors import RoomFullError


def ids(members):
    return [member["connectionId"] for member in members]


class TestRoomStore:
    def test_join_creates_room(self, store, clock):
        members = store.join("a", "room-1", {"name": "Alice"})

        assert ids(members) == ["a"]
        assert members[0]["metadata"] == {"name": "Alice"}
        assert store.room_count() == 1
        assert store.get_room("room-1").created_at == clock.now

    def test_join_preserves_order(self, store):
        store.join("a", "room-1")
        members = store.join("b", "room-1")

        assert ids(members) == ["a", "b"]
        assert store.socket_count() == 2

    def test_rejoin_is_idempotent(self, store):
        store.join("a", "room-1", {"name": "Alice"})
        members = store.join("a", "room-1")

        assert ids(members) == ["a"]
        assert members[0]["metadata"] == {"name": "Alice"}

    def test_rejoin_refreshes_metadata(self, store, clock):
        first = store.join("a", "room-1", {"name": "Alice"})
        clock.advance(5)
        members = store.join("a", "room-1", {"name": "Alicia"})

        assert members[0]["metadata"] == {"name": "Alicia"}
        assert members[0]["joinedAt"] == first[0]["joinedAt"]

    def test_leave_returns_remaining(self, store):
        store.join("a", "room-1")
        store.join("b", "room-1")

        assert ids(store.leave("a", "room-1")) == ["b"]
        assert not store.has_member("room-1", "a")

    def test_leave_last_member_deletes_room(self, store):
        store.join("a", "room-1")

        assert store.leave("a", "room-1") is None
        assert store.get_members("room-1") == []
        assert store.get_room("room-1") is None
        assert store.room_count() == 0

    def test_leave_absent_member_is_noop(self, store):
        store.join("a", "room-1")

        assert ids(store.leave("b", "room-1")) == ["a"]
        assert store.leave("a", "nowhere") is None

    def test_get_members_unknown_room(self, store):
        assert store.get_members("nope") == []
        assert store.member_ids("nope") == []

    def test_capacity_enforced(self, clock):
        store = RoomStore(max_capacity=2, clock=clock)
        store.join("a", "room-1")
        store.join("b", "room-1")

        with pytest.raises(RoomFullError):
            store.join("c", "room-1")
        assert ids(store.get_members("room-1")) == ["a", "b"]
        # existing members can still re-join a full room
        assert ids(store.join("b", "room-1")) == ["a", "b"]

    def test_zero_capacity_is_unlimited(self, store):
        for n in range(50):
            store.join(f"c{n}", "big")
        assert store.socket_count() == 50

    def test_purge_stale_only_empty_and_old(self, store, clock):
        store.ensure_room("empty-old")
        store.join("a", "busy-old")
        clock.advance(120)
        store.ensure_room("empty-new")

        deleted = store.purge_stale(stale_after=60)

        assert deleted == ["empty-old"]
        assert store.get_room("busy-old") is not None
        assert store.get_room("empty-new") is not None

    def test_clear(self, store):
        store.join("a", "room-1")
        store.clear()
        assert store.room_count() == 0


class TestConnectionRegistry:
    def test_assign_and_release(self, registry):
        registry.connect("a")
        registry.assign("a", "room-1", {"name": "Alice"})

        assert registry.room_of("a") == "room-1"
        assert registry.get("a").metadata == {"name": "Alice"}

        registry.release("a", "other-room")
        assert registry.room_of("a") == "room-1"
        registry.release("a", "room-1")
        assert registry.room_of("a") is None

    def test_remove(self, registry):
        registry.connect("a")
        assert registry.count() == 1
        assert registry.remove("a").connection_id == "a"
        assert registry.remove("a") is None
        assert registry.room_of("a") is None
        assert registry.count() == 0

    def test_connect_is_idempotent(self):
        registry = ConnectionRegistry()
        first = registry.connect("a")
        assert registry.connect("a") is first

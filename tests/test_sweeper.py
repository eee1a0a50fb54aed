import asyncio

import pytest

from sweeper import LifecycleSweeper


def test_sweep_deletes_stale_empty_room(store, clock):
    store.ensure_room("abandoned")
    clock.advance(301)
    sweeper = LifecycleSweeper(store, interval=60, stale_after=300)

    assert sweeper.sweep() == ["abandoned"]
    assert store.get_room("abandoned") is None


def test_sweep_keeps_recent_empty_room(store, clock):
    store.ensure_room("fresh")
    clock.advance(10)
    sweeper = LifecycleSweeper(store, interval=60, stale_after=300)

    assert sweeper.sweep() == []
    assert store.get_room("fresh") is not None


def test_sweep_never_deletes_occupied_room(store, clock):
    store.join("a", "busy")
    clock.advance(10_000)
    sweeper = LifecycleSweeper(store, interval=60, stale_after=0)

    assert sweeper.sweep() == []
    assert store.get_members("busy")[0]["connectionId"] == "a"


def test_sweep_skips_room_refilled_after_going_empty(store, clock):
    store.ensure_room("revived")
    clock.advance(1000)
    store.join("b", "revived")
    sweeper = LifecycleSweeper(store, interval=60, stale_after=300)

    assert sweeper.sweep() == []


@pytest.mark.asyncio
async def test_background_task_sweeps_periodically(store, clock):
    store.ensure_room("abandoned")
    clock.advance(100)
    sweeper = LifecycleSweeper(store, interval=0.01, stale_after=50)

    sweeper.start()
    assert sweeper.running
    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert not sweeper.running
    assert store.room_count() == 0


@pytest.mark.asyncio
async def test_failed_pass_does_not_stop_loop(store, clock, monkeypatch):
    calls = []
    original = store.purge_stale

    def flaky(stale_after, now=None):
        calls.append(stale_after)
        if len(calls) == 1:
            raise RuntimeError("store unavailable")
        return original(stale_after, now)

    monkeypatch.setattr(store, "purge_stale", flaky)
    store.ensure_room("abandoned")
    clock.advance(100)
    sweeper = LifecycleSweeper(store, interval=0.01, stale_after=50)

    sweeper.start()
    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert len(calls) >= 2
    assert store.room_count() == 0


@pytest.mark.asyncio
async def test_stop_without_start(store):
    sweeper = LifecycleSweeper(store, interval=1, stale_after=1)

    await sweeper.stop()
    assert not sweeper.running


@pytest.mark.asyncio
async def test_start_is_idempotent(store):
    sweeper = LifecycleSweeper(store, interval=60, stale_after=1)

    sweeper.start()
    task = sweeper._task
    sweeper.start()
    assert sweeper._task is task
    await sweeper.stop()

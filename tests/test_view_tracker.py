from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.infrastructure.cache.view_tracker import InMemoryViewTracker, RedisViewTracker, view_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return InMemoryViewTracker(window=30, retention=60, clock=clock)


@pytest.mark.asyncio
async def test_repeat_views_inside_window_count_once(tracker, clock):
    material_id = uuid4()
    assert await tracker.register_view(material_id, "user:1") is True
    clock.advance(10)
    assert await tracker.register_view(material_id, "user:1") is False
    clock.advance(19)
    assert await tracker.register_view(material_id, "user:1") is False


@pytest.mark.asyncio
async def test_view_after_window_counts_again(tracker, clock):
    material_id = uuid4()
    assert await tracker.register_view(material_id, "ip:10.0.0.1") is True
    clock.advance(31)
    assert await tracker.register_view(material_id, "ip:10.0.0.1") is True


@pytest.mark.asyncio
async def test_view_exactly_at_window_edge_is_still_deduplicated(tracker, clock):
    material_id = uuid4()
    assert await tracker.register_view(material_id, "user:7") is True
    clock.advance(30)
    assert await tracker.register_view(material_id, "user:7") is False


@pytest.mark.asyncio
async def test_viewers_and_materials_are_independent(tracker):
    first, second = uuid4(), uuid4()
    assert await tracker.register_view(first, "user:1") is True
    assert await tracker.register_view(first, "user:2") is True
    assert await tracker.register_view(second, "user:1") is True
    assert len(tracker) == 3


def test_stale_entries_are_swept(tracker, clock):
    tracker.should_count("a")
    clock.advance(45)
    tracker.should_count("b")
    assert len(tracker) == 2

    clock.advance(20)
    tracker.should_count("c")
    assert len(tracker) == 2
    assert view_key("m", "v") == "m:v"


def test_retention_shorter_than_window_is_rejected():
    with pytest.raises(ValueError):
        InMemoryViewTracker(window=30, retention=10)


@pytest.mark.asyncio
async def test_redis_tracker_uses_set_nx_with_expiry():
    client = AsyncMock()
    client.set.side_effect = [True, None]
    tracker = RedisViewTracker(client, window=30)
    material_id = uuid4()

    assert await tracker.register_view(material_id, "user:7") is True
    assert await tracker.register_view(material_id, "user:7") is False
    client.set.assert_awaited_with(f"view:{material_id}:user:7", "1", nx=True, ex=30)


@pytest.mark.asyncio
async def test_redis_outage_counts_the_view():
    client = AsyncMock()
    client.set.side_effect = ConnectionError("redis down")
    tracker = RedisViewTracker(client, window=30)

    assert await tracker.register_view(uuid4(), "user:7") is True

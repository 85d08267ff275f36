from datetime import datetime, timedelta, timezone

import pytest

from app.services.kv_store import KVStoreError
from app.services.link_store import LinkStore
from app.services.resharing import ResharingEngine
from app.utils.formatting import NoticeFormatter

ALLOWLIST = ("apple.com", "developer.apple.com", "youtube.com/watch?v=dQw4w9WgXcQ")


class MemoryKVStore:
    """In-memory KVStore з можливістю «зламати» окремі ключі."""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.fail_get = False
        self.fail_set_keys = set()

    async def get(self, key):
        if self.fail_get:
            raise KVStoreError("get failed")
        value = self.data.get(key)
        return dict(value) if value is not None else None

    async def set(self, key, value, ttl_seconds=None):
        if key in self.fail_set_keys:
            raise KVStoreError("set failed")
        self.data[key] = dict(value)
        self.ttls[key] = ttl_seconds

    async def delete(self, key):
        self.data.pop(key, None)
        self.ttls.pop(key, None)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def kv():
    return MemoryKVStore()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 7, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def link_store(kv):
    return LinkStore(kv, ttl_seconds=604800)


@pytest.fixture
def make_engine(link_store, clock):
    def _make(**overrides):
        params = dict(
            allowlist=ALLOWLIST,
            notices=NoticeFormatter(prefix="👋"),
            clock=clock,
            recent_window=5,
            notify_self_reshare=True,
        )
        params.update(overrides)
        return ResharingEngine(link_store, **params)
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()

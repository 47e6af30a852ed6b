"""Unit test fixtures.

Provides an in-memory stand-in for the redis-py async client with a
controllable clock, so expiry-dependent behaviour can be tested without
sleeping.
"""

from __future__ import annotations

import pytest

from warden.store.facade import AtomicStore


class FakeClock:
    """Manually advanced Unix clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _parse_bound(value: float | str) -> float:
    if value == "-inf":
        return float("-inf")
    if value == "+inf":
        return float("inf")
    return float(value)


class FakeRedis:
    """Subset of ``redis.asyncio.Redis`` used by AtomicStore.

    Mirrors server semantics for string keys with expiry and sorted sets,
    with ``decode_responses=True`` behaviour (values come back as str).
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.strings: dict[str, str] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.expiry: dict[str, float] = {}
        self.closed = False

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= self.clock():
            self.strings.pop(key, None)
            self.zsets.pop(key, None)
            self.expiry.pop(key, None)

    def _exists(self, key: str) -> bool:
        self._purge(key)
        return key in self.strings or key in self.zsets

    async def get(self, key: str) -> str | None:
        self._purge(key)
        return self.strings.get(key)

    async def incr(self, key: str) -> int:
        self._purge(key)
        value = int(self.strings.get(key, "0")) + 1
        self.strings[key] = str(value)
        return value

    async def set(
        self, key: str, value: str, nx: bool = False, ex: int | None = None
    ) -> bool | None:
        if nx and self._exists(key):
            return None
        self.strings[key] = value
        if ex is not None:
            self.expiry[key] = self.clock() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def getex(self, key: str, ex: int | None = None) -> str | None:
        self._purge(key)
        value = self.strings.get(key)
        if value is not None and ex is not None:
            self.expiry[key] = self.clock() + ex
        return value

    async def expire(self, key: str, ttl: int) -> bool:
        if not self._exists(key):
            return False
        self.expiry[key] = self.clock() + ttl
        return True

    async def ttl(self, key: str) -> int:
        if not self._exists(key):
            return -2
        deadline = self.expiry.get(key)
        if deadline is None:
            return -1
        # Redis rounds the remaining time to the nearest second
        return int(deadline - self.clock() + 0.5)

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._exists(key))

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._exists(key):
                deleted += 1
            self.strings.pop(key, None)
            self.zsets.pop(key, None)
            self.expiry.pop(key, None)
        return deleted

    async def eval(self, script: str, numkeys: int, key: str, value: str, ttl: int) -> int:
        # Only the compare-and-expire script is ever evaluated
        self._purge(key)
        if self.strings.get(key) == value:
            self.expiry[key] = self.clock() + int(ttl)
            return 1
        return 0

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        self._purge(key)
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zremrangebyscore(self, key: str, min: float | str, max: float | str) -> int:
        self._purge(key)
        zset = self.zsets.get(key, {})
        low, high = _parse_bound(min), _parse_bound(max)
        doomed = [member for member, score in zset.items() if low <= score <= high]
        for member in doomed:
            del zset[member]
        if key in self.zsets and not zset:
            del self.zsets[key]
        return len(doomed)

    async def zrangebyscore(
        self, key: str, min: float | str, max: float | str, withscores: bool = False
    ) -> list:
        self._purge(key)
        low, high = _parse_bound(min), _parse_bound(max)
        members = sorted(
            ((member, score) for member, score in self.zsets.get(key, {}).items()),
            key=lambda item: (item[1], item[0]),
        )
        selected = [(member, score) for member, score in members if low <= score <= high]
        if withscores:
            return selected
        return [member for member, _ in selected]

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock shared by the fake store and primitives."""
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    """In-memory Redis stand-in bound to the test clock."""
    return FakeRedis(clock)


@pytest.fixture
def store(fake_redis: FakeRedis) -> AtomicStore:
    """Atomic store facade over the in-memory Redis."""
    return AtomicStore(fake_redis)  # type: ignore[arg-type]

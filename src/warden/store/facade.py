"""Atomic command facade over the shared store client.

Every method issues exactly one server-side command (or one Lua script),
so each call is atomic for its key. Nothing here spans multiple keys;
primitives that need cross-key invariants have to tolerate that.

Failures of any kind (connection, protocol, timeout) surface as
StoreUnavailableError so callers can tell "the key is absent" apart from
"the store could not answer".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, TypeVar, cast

from redis.exceptions import RedisError

from warden.errors import StoreUnavailableError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default per-command timeout in seconds
DEFAULT_COMMAND_TIMEOUT = 5.0

# Extend the expiry only while the key still holds the expected value
EXPIRE_IF_VALUE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


def _score_bound(score: float) -> str | float:
    if score == float("-inf"):
        return "-inf"
    if score == float("inf"):
        return "+inf"
    return score


class AtomicStore:
    """Minimal atomic command set used by the coordination primitives.

    Args:
        client: Shared redis-py async client (``decode_responses=True``)
        command_timeout: Upper bound in seconds for a single command
    """

    def __init__(self, client: Redis, command_timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.client = client
        self.command_timeout = command_timeout

    async def _execute(self, command: str, call: Awaitable[T]) -> T:
        try:
            async with asyncio.timeout(self.command_timeout):
                return await call
        except RedisError as e:
            logger.error(f"Store command {command} failed: {e}")
            raise StoreUnavailableError(command, str(e)) from e
        except TimeoutError as e:
            logger.error(f"Store command {command} timed out after {self.command_timeout}s")
            raise StoreUnavailableError(
                command, f"timed out after {self.command_timeout}s"
            ) from e

    # -------------------------------------------------------------------------
    # String keys
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        return await self._execute("GET", self.client.get(key))

    async def increment(self, key: str) -> int:
        """Increment a counter, creating it at 1 when absent."""
        return int(await self._execute("INCR", self.client.incr(key)))

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """Set ``key`` with an expiry only if it does not exist yet.

        Returns:
            True if this call created the key, False if it already existed.
        """
        result = await self._execute("SET", self.client.set(key, value, nx=True, ex=ttl))
        return bool(result)

    async def get_and_refresh_expiry(self, key: str, ttl: int) -> str | None:
        """Return the value of ``key`` and reset its expiry to ``ttl``."""
        return await self._execute("GETEX", self.client.getex(key, ex=ttl))

    async def set_expiry(self, key: str, ttl: int) -> bool:
        """Set the expiry of an existing key. False when the key is absent."""
        return bool(await self._execute("EXPIRE", self.client.expire(key, ttl)))

    async def time_to_live(self, key: str) -> int | None:
        """Remaining lifetime in seconds.

        Returns None when the key is absent or carries no expiry.
        """
        ttl = int(await self._execute("TTL", self.client.ttl(key)))
        if ttl < 0:
            return None
        return ttl

    async def exists(self, key: str) -> bool:
        return bool(await self._execute("EXISTS", self.client.exists(key)))

    async def delete(self, key: str) -> bool:
        """Delete ``key``. Returns True if it existed."""
        return bool(await self._execute("DEL", self.client.delete(key)))

    async def expire_if_value(self, key: str, value: str, ttl: int) -> bool:
        """Reset the expiry of ``key`` only while it still holds ``value``.

        Runs as a single Lua script, so no other client can take the key
        between the comparison and the expire.
        """
        result = await self._execute(
            "EVAL",
            cast(Awaitable[Any], self.client.eval(EXPIRE_IF_VALUE_SCRIPT, 1, key, value, ttl)),
        )
        return bool(result)

    # -------------------------------------------------------------------------
    # Sorted sets
    # -------------------------------------------------------------------------

    async def add_to_sorted_set(self, set_key: str, score: float, member: str) -> None:
        """Add ``member`` with ``score``; an existing member gets the new score."""
        await self._execute("ZADD", self.client.zadd(set_key, {member: score}))

    async def remove_sorted_set_range(
        self, set_key: str, min_score: float, max_score: float
    ) -> int:
        """Remove members scored within [min_score, max_score]. Returns the count."""
        removed = await self._execute(
            "ZREMRANGEBYSCORE",
            self.client.zremrangebyscore(set_key, _score_bound(min_score), _score_bound(max_score)),
        )
        return int(removed)

    async def sorted_set_range(
        self, set_key: str, min_score: float, max_score: float
    ) -> list[tuple[str, float]]:
        """Members scored within [min_score, max_score], lowest score first."""
        members = await self._execute(
            "ZRANGEBYSCORE",
            self.client.zrangebyscore(
                set_key,
                _score_bound(min_score),
                _score_bound(max_score),
                withscores=True,
            ),
        )
        return [(member, float(score)) for member, score in members]

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def ping(self) -> bool:
        """Check store connectivity."""
        try:
            await self._execute("PING", cast(Awaitable[bool], self.client.ping()))
            return True
        except StoreUnavailableError:
            return False
